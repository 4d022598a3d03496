from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from fieldtrack.core.database import Base


class Employee(Base):
    """Field employee. Accounts are managed by the admin portal; we only read them."""
    __tablename__ = "employees"

    id = Column(Integer, primary_key=True, index=True)
    employee_code = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=True)
    department = Column(String, nullable=True)
    role = Column(String, default="employee", nullable=False)
    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    geofence_links = relationship("EmployeeGeofence", back_populates="employee", cascade="all, delete-orphan")

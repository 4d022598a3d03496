"""
Database initialization script
Run this to create tables and seed a demo employee with an office geofence
"""
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent))

from fieldtrack.core.database import engine, Base, SessionLocal
from fieldtrack.core.security import create_access_token
from fieldtrack.models import Employee, Geofence, GeofenceType, EmployeeGeofence


def init_db():
    """Initialize database with tables"""
    print("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    print("✓ Tables created successfully")


def seed_data():
    """Seed a demo employee assigned to one office geofence"""
    db = SessionLocal()

    try:
        print("\nSeeding initial data...")

        manager = db.query(Employee).filter(Employee.employee_code == "MGR001").first()
        if not manager:
            manager = Employee(
                employee_code="MGR001",
                name="Field Manager",
                email="manager@fieldtrack.local",
                department="Operations",
                role="manager",
            )
            db.add(manager)
            print("✓ Manager created (code: MGR001)")

        employee = db.query(Employee).filter(Employee.employee_code == "EMP001").first()
        if not employee:
            employee = Employee(
                employee_code="EMP001",
                name="Demo Field Agent",
                email="agent@fieldtrack.local",
                department="Sales",
            )
            db.add(employee)
            print("✓ Demo employee created (code: EMP001)")

        office = db.query(Geofence).filter(Geofence.name == "Head Office").first()
        if not office:
            office = Geofence(
                name="Head Office",
                latitude=28.6139,
                longitude=77.209,
                radius_meters=500,
                type=GeofenceType.OFFICE.value,
            )
            db.add(office)
            print("✓ Created geofence Head Office (500m)")

        db.flush()

        link = db.query(EmployeeGeofence).filter(
            EmployeeGeofence.employee_id == employee.id,
            EmployeeGeofence.geofence_id == office.id,
        ).first()
        if not link:
            db.add(EmployeeGeofence(employee_id=employee.id, geofence_id=office.id))
            print("✓ Assigned EMP001 to Head Office")

        db.commit()
        print("\n✓ Database seeded successfully!")
        return employee.id, manager.id

    except Exception as e:
        print(f"\n✗ Error seeding data: {e}")
        db.rollback()
        return None
    finally:
        db.close()


if __name__ == "__main__":
    print("=" * 60)
    print("FieldTrack - Database Initialization")
    print("=" * 60)

    init_db()
    seeded = seed_data()

    print("\n" + "=" * 60)
    print("Initialization complete!")
    print("=" * 60)
    print("\nYou can now access:")
    print("  - API: http://localhost:8000")
    print("  - API Docs: http://localhost:8000/docs")
    if seeded:
        employee_id, manager_id = seeded
        print("\nDemo bearer tokens (short lived):")
        print(f"  EMP001 - {create_access_token(employee_id)}")
        print(f"  MGR001 - {create_access_token(manager_id)}")
    print("=" * 60)

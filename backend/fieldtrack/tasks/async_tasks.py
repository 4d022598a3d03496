from fieldtrack.celery_app import celery_app
from fieldtrack.core.database import SessionLocal
from fieldtrack.schemas.location import to_utc_naive
from fieldtrack.services.location_ingest import LocationIngestService, parse_samples
from fieldtrack.services.route import get_employee_route, summarize_route


@celery_app.task(name="ingest_location_batch")
def ingest_location_batch(employee_id: int, samples: list, device_id: str = None):
    """
    Deferred ingest of a location batch (same ordering and scoring as the API)
    """
    db = SessionLocal()
    try:
        service = LocationIngestService(db)
        result = service.ingest_batch(employee_id, parse_samples(samples), device_id)
        return {
            "employee_id": employee_id,
            "synced": result.synced,
            "duplicates": result.duplicates,
        }
    finally:
        db.close()


@celery_app.task(name="summarize_route")
def summarize_route_task(employee_id: int, start: str, end: str):
    """
    Route summary for an employee between two ISO timestamps
    """
    db = SessionLocal()
    try:
        records = get_employee_route(db, employee_id, to_utc_naive(start), to_utc_naive(end))
        return summarize_route(records).model_dump(mode="json")
    finally:
        db.close()

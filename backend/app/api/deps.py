from __future__ import annotations

from uuid import UUID

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.db.models import Patient
from app.db.session import SessionLocal
from app.services.record_store import RecordStore, SqlAlchemyRecordStore


def get_record_store() -> RecordStore:
    return SqlAlchemyRecordStore(SessionLocal)


def _is_uuid(value: str) -> bool:
    try:
        UUID(value)
    except ValueError:
        return False
    return True


def get_patient_or_404(db: Session, patient_ref: str) -> Patient:
    """Resolve a patient by primary key or by UHID."""
    patient = None
    if _is_uuid(patient_ref):
        patient = db.get(Patient, patient_ref)
    if patient is None:
        patient = db.scalar(select(Patient).where(Patient.uhid == patient_ref))
    if not patient:
        raise HTTPException(status_code=404, detail="Patient not found")
    return patient

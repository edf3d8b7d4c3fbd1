from __future__ import annotations

import logging

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request, Response, status
from pydantic import ValidationError
from slowapi.util import get_remote_address
from sqlalchemy import desc, select
from sqlalchemy.orm import Session

from app.api.deps import get_patient_or_404
from app.core.config import get_settings
from app.core.rate_limit import limiter, user_or_ip_key
from app.db.models import Patient
from app.db.session import get_db
from app.schemas.patient import PatientCreate, PatientRead

router = APIRouter(prefix="/patients", tags=["patients"])
settings = get_settings()
logger = logging.getLogger(__name__)


@router.get("", response_model=list[PatientRead])
@limiter.limit(settings.rate_limit_read_per_user, key_func=user_or_ip_key)
def list_patients(
    request: Request,
    response: Response,
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0, le=10_000),
    db: Session = Depends(get_db),
):
    rows = db.scalars(
        select(Patient).order_by(desc(Patient.created_at)).limit(limit).offset(offset)
    ).all()
    return list(rows)


@router.post("", response_model=PatientRead, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.rate_limit_mutating_per_ip, key_func=get_remote_address)
@limiter.limit(settings.rate_limit_mutating_per_user, key_func=user_or_ip_key)
def register_patient(
    request: Request,
    response: Response,
    payload: dict = Body(...),
    db: Session = Depends(get_db),
):
    try:
        parsed_payload = PatientCreate.model_validate(payload)
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=exc.errors()) from exc

    existing = db.scalar(select(Patient).where(Patient.uhid == parsed_payload.uhid))
    if existing:
        raise HTTPException(status_code=409, detail="Patient UHID already exists")

    patient = Patient(
        uhid=parsed_payload.uhid,
        name=parsed_payload.name,
        gender=parsed_payload.gender,
        age=parsed_payload.age,
        phone=parsed_payload.phone,
    )
    db.add(patient)
    db.commit()
    db.refresh(patient)
    logger.info("Registered patient %s (%s)", patient.id, patient.uhid)
    return patient


@router.get("/{patient_ref}", response_model=PatientRead)
@limiter.limit(settings.rate_limit_read_per_user, key_func=user_or_ip_key)
def get_patient(
    request: Request,
    response: Response,
    patient_ref: str,
    db: Session = Depends(get_db),
):
    return get_patient_or_404(db, patient_ref)

from __future__ import annotations

import asyncio

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from sqlalchemy.orm import Session

from app.api.deps import get_patient_or_404, get_record_store
from app.core.config import Settings, get_settings
from app.core.rate_limit import limiter, user_or_ip_key
from app.db.session import get_db
from app.schemas.timeline import TimelineRead
from app.services.record_store import RecordStore
from app.services.timeline import PatientRef, build_patient_timeline
from app.services.timeline_grouping import group_by_admission, group_by_day

router = APIRouter(prefix="/patients", tags=["timeline"])
settings = get_settings()


@router.get("/{patient_ref}/timeline", response_model=TimelineRead)
@limiter.limit(settings.rate_limit_read_per_user, key_func=user_or_ip_key)
async def get_patient_timeline(
    request: Request,
    response: Response,
    patient_ref: str,
    include_clinical_records: bool | None = Query(default=None),
    db: Session = Depends(get_db),
    store: RecordStore = Depends(get_record_store),
    cfg: Settings = Depends(get_settings),
):
    patient = await asyncio.to_thread(get_patient_or_404, db, patient_ref)
    ref = PatientRef(id=patient.id, display_id=patient.uhid, created_at=patient.created_at)

    result = await build_patient_timeline(
        store,
        ref,
        cfg,
        include_clinical_records=include_clinical_records,
    )
    if result.all_sources_failed:
        raise HTTPException(status_code=503, detail="Could not load patient history")

    admissions = group_by_admission(result.events)
    return TimelineRead(
        patient_id=patient.id,
        patient_uhid=patient.uhid,
        events=result.events,
        admissions=admissions,
        days=group_by_day(admissions, cfg.timeline_timezone),
        failed_sources=result.failed_sources,
    )

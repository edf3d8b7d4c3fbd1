from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable

from app.core.config import Settings
from app.core.enums import SourceCategory
from app.schemas.timeline import TimelineEvent
from app.services.payment_status import PaymentTolerance
from app.services.record_store import RecordStore, Row
from app.services.timeline_links import build_link_index
from app.services.timeline_normalizers import (
    NormalizeContext,
    normalize_registration,
    normalize_sources,
)
from app.services.timeline_sources import DEFAULT_FETCH_TIMEOUT_SECONDS, gather_sources

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PatientRef:
    id: str
    display_id: str
    created_at: datetime | None = None


@dataclass
class TimelineResult:
    events: list[TimelineEvent]
    failed_sources: list[SourceCategory] = field(default_factory=list)
    all_sources_failed: bool = False


def sort_events(events: Iterable[TimelineEvent]) -> list[TimelineEvent]:
    """Most recent first. ``sorted`` is stable, so equal timestamps keep input order."""
    return sorted(events, key=lambda event: event.date, reverse=True)


def dedupe_events(events: Iterable[TimelineEvent]) -> list[TimelineEvent]:
    seen: set[str] = set()
    unique: list[TimelineEvent] = []
    for event in events:
        if event.id in seen:
            logger.warning("Dropping duplicate timeline event id %s", event.id)
            continue
        seen.add(event.id)
        unique.append(event)
    return unique


def context_from_settings(patient: PatientRef, settings: Settings, **links: Any) -> NormalizeContext:
    return NormalizeContext(
        patient_display_id=patient.display_id,
        clinic_timezone=settings.timeline_timezone,
        note_preview_chars=settings.clinical_note_preview_chars,
        tolerance=PaymentTolerance(
            rounded_total=settings.pharmacy_rounded_total_tolerance,
            raw_amount=settings.pharmacy_raw_amount_tolerance,
        ),
        **links,
    )


async def build_patient_timeline(
    store: RecordStore,
    patient: PatientRef,
    settings: Settings,
    *,
    admissions: list[Row] | None = None,
    include_clinical_records: bool | None = None,
) -> TimelineResult:
    if include_clinical_records is None:
        include_clinical_records = settings.timeline_include_clinical_records

    sources = await gather_sources(
        store,
        patient.id,
        admissions=admissions,
        include_clinical_records=include_clinical_records,
        timeout=settings.timeline_fetch_timeout_seconds or DEFAULT_FETCH_TIMEOUT_SECONDS,
    )

    links = build_link_index(
        admissions=sources.admissions,
        billing=sources.billing,
        other_bills=sources.other_bills,
    )
    ctx = context_from_settings(patient, settings, links=links)

    events = normalize_registration(patient.id, patient.created_at, ctx)
    events += normalize_sources(sources, ctx)
    events = sort_events(dedupe_events(events))

    logger.info(
        "Built timeline for patient %s: %d events, %d/%d sources failed",
        patient.id,
        len(events),
        len(sources.failed),
        len(sources.attempted),
    )
    return TimelineResult(
        events=events,
        failed_sources=list(sources.failed),
        all_sources_failed=sources.all_failed,
    )

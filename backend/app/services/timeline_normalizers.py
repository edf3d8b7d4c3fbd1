"""Row -> TimelineEvent adapters, one per source category.

Each source names its timestamp, amount and status columns differently;
the adapters below are the only place those names are known. A row whose
date candidates all fail to parse produces no event.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Any, Callable

from pydantic import ValidationError

from app.core.enums import PaymentStatus, SourceCategory, TimelineEventType
from app.schemas.timeline import TimelineEvent
from app.services.payment_status import (
    DEFAULT_TOLERANCE,
    PaymentTolerance,
    classify_payment_status,
    to_number,
)
from app.services.record_store import Row
from app.services.timeline_links import LinkIndex
from app.services.timeline_sources import TimelineSources

logger = logging.getLogger(__name__)

UTC = timezone.utc

# Instants within a day of the datetime range cannot be shifted to a civil offset.
EARLIEST_INSTANT = datetime.min.replace(tzinfo=UTC) + timedelta(days=1)
LATEST_INSTANT = datetime.max.replace(tzinfo=UTC) - timedelta(days=1)


@dataclass(frozen=True)
class NormalizeContext:
    patient_display_id: str
    clinic_timezone: tzinfo = UTC
    note_preview_chars: int = 50
    tolerance: PaymentTolerance = DEFAULT_TOLERANCE
    links: LinkIndex = field(default_factory=LinkIndex)


def parse_instant(value: Any, *, assume_tz: tzinfo = UTC) -> datetime | None:
    """Parse a store timestamp into an aware UTC datetime, or None.

    Naive values are read in ``assume_tz``; date-only values mean midnight.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text[-1] in "Zz":
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=assume_tz)
    try:
        parsed = parsed.astimezone(UTC)
    except (ValueError, OverflowError):
        return None
    if not EARLIEST_INSTANT <= parsed <= LATEST_INSTANT:
        return None
    return parsed


def first_instant(*candidates: Any, assume_tz: tzinfo = UTC) -> datetime | None:
    for candidate in candidates:
        parsed = parse_instant(candidate, assume_tz=assume_tz)
        if parsed is not None:
            return parsed
    return None


def _text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _amount(value: Any) -> float | None:
    number = to_number(value)
    if number is None or number < 0:
        return None
    return number


def _upper(value: Any) -> str | None:
    text = _text(value)
    return text.upper() if text else None


def _labelled(label: str, value: Any) -> str | None:
    text = _text(value)
    return f"{label}: {text}" if text else None


def _preview(value: Any, limit: int) -> str | None:
    text = _text(value)
    return f"{text[:limit]}..." if text else None


def _row_key(row: Row, idx: int) -> str:
    return _text(row.get("id")) or f"#{idx}"


def _event_id(prefix: str, key: str) -> str:
    # Prefixes never contain ":", so ids from different sources cannot collide.
    return f"{prefix}:{key}"


def _build(when: datetime | None, **fields: Any) -> list[TimelineEvent]:
    if when is None:
        logger.debug("Dropping undated %s event %s", fields.get("type"), fields.get("id"))
        return []
    return [TimelineEvent(date=when, **fields)]


def _admission_link(ctx: NormalizeContext, allocation_id: str | None) -> str | None:
    if not allocation_id:
        return None
    return f"/patients/{ctx.patient_display_id}?tab=clinical-records&allocation={allocation_id}"


def normalize_registration(
    patient_id: str, created_at: Any, ctx: NormalizeContext
) -> list[TimelineEvent]:
    return _build(
        parse_instant(created_at),
        id=_event_id("registration", patient_id),
        type=TimelineEventType.REGISTRATION,
        title="Patient Registered",
    )


def normalize_appointment(row: Row, idx: int, ctx: NormalizeContext) -> list[TimelineEvent]:
    when = None
    day = row.get("appointment_date")
    if day:
        if isinstance(day, datetime):
            day = day.date()
        slot = row.get("appointment_time") or "00:00:00"
        day_text = day.isoformat() if isinstance(day, date) else str(day)
        slot_text = slot.isoformat() if isinstance(slot, time) else str(slot)
        # Booked slots are clinic wall-clock times.
        when = parse_instant(f"{day_text}T{slot_text}", assume_tz=ctx.clinic_timezone)
    if when is None:
        when = parse_instant(row.get("created_at"))

    appointment_id = _text(row.get("id"))
    kind = _text(row.get("type"))
    return _build(
        when,
        id=_event_id("appointment", _row_key(row, idx)),
        type=TimelineEventType.APPOINTMENT,
        title=f"OP: {kind}" if kind else "OP Appointment",
        subtitle=_labelled("Status", row.get("status")),
        link=f"/appointments/{appointment_id}" if appointment_id else None,
    )


def normalize_admission(row: Row, idx: int, ctx: NormalizeContext) -> list[TimelineEvent]:
    key = _row_key(row, idx)
    allocation_id = _text(row.get("id"))
    ip_number = _text(row.get("ip_number"))
    ip_label = f"IP {ip_number}" if ip_number else "IP Admission"
    bed = row.get("bed") or {}
    room = _text(bed.get("room_number"))
    link = _admission_link(ctx, allocation_id)

    events = _build(
        parse_instant(row.get("admission_date")),
        id=_event_id("ip_admission", key),
        type=TimelineEventType.IP_ADMISSION,
        title=ip_label,
        subtitle=f"Room {room} • Bed {_text(bed.get('bed_number')) or 'N/A'}" if room else None,
        status=_text(row.get("status")),
        link=link,
        bed_allocation_id=allocation_id,
    )
    if row.get("discharge_date"):
        events += _build(
            parse_instant(row.get("discharge_date")),
            id=_event_id("ip_discharge", key),
            type=TimelineEventType.IP_DISCHARGE,
            title=f"{ip_label} Discharged",
            subtitle=_labelled("Reason", row.get("discharge_reason")),
            status="discharged",
            link=link,
            bed_allocation_id=allocation_id,
        )
    return events


def normalize_vitals(row: Row, idx: int, ctx: NormalizeContext) -> list[TimelineEvent]:
    recorder = _text((row.get("recorded_by_user") or {}).get("name"))
    return _build(
        parse_instant(row.get("recorded_at")),
        id=_event_id("vitals", _row_key(row, idx)),
        type=TimelineEventType.VITALS,
        title="Vitals Recorded",
        subtitle=f"By {recorder}" if recorder else None,
    )


def normalize_medical_history(row: Row, idx: int, ctx: NormalizeContext) -> list[TimelineEvent]:
    return _build(
        parse_instant(row.get("event_date")),
        id=_event_id("med_history", _row_key(row, idx)),
        type=TimelineEventType.MEDICAL_HISTORY,
        title=_text(row.get("event_name")) or "Medical History",
        subtitle=_text(row.get("event_type")),
    )


def _catalog_order(event_type: TimelineEventType, fallback_title: str):
    def normalize(row: Row, idx: int, ctx: NormalizeContext) -> list[TimelineEvent]:
        order_id = _text(row.get("id"))
        test_name = _text((row.get("test_catalog") or {}).get("test_name"))
        return _build(
            parse_instant(row.get("created_at")),
            id=_event_id(event_type.value, _row_key(row, idx)),
            type=event_type,
            title=test_name or fallback_title,
            subtitle=_labelled("Status", row.get("status")),
            link=f"/lab-xray/order/{order_id}" if order_id else None,
        )

    return normalize


normalize_lab_order = _catalog_order(TimelineEventType.LAB, "Lab Order")
normalize_radiology_order = _catalog_order(TimelineEventType.RADIOLOGY, "Radiology Order")


def normalize_xray_order(row: Row, idx: int, ctx: NormalizeContext) -> list[TimelineEvent]:
    return _build(
        first_instant(row.get("created_at"), row.get("ordered_at")),
        id=_event_id("xray", _row_key(row, idx)),
        type=TimelineEventType.XRAY,
        title=_text(row.get("scan_name")) or _text(row.get("body_part")) or "X-ray",
        subtitle=_labelled("Status", row.get("status")),
    )


def normalize_scan_order(row: Row, idx: int, ctx: NormalizeContext) -> list[TimelineEvent]:
    return _build(
        first_instant(row.get("created_at"), row.get("ordered_date")),
        id=_event_id("scan", _row_key(row, idx)),
        type=TimelineEventType.SCAN,
        title=_text(row.get("scan_name")) or _text(row.get("scan_type")) or "Scan",
        subtitle=_labelled("Status", row.get("status")),
    )


DIAGNOSTIC_BILL_TYPES = {"lab", "radiology", "xray", "scan"}
CONSULTATION_BILL_TYPES = {"consultation", "op"}


def billing_link(bill_id: str, bill_type: str | None) -> str:
    if bill_type in DIAGNOSTIC_BILL_TYPES:
        return f"/lab-xray/order/{bill_id}"
    if bill_type in CONSULTATION_BILL_TYPES:
        return f"/finance/billing?bill={bill_id}&type=consultation"
    return f"/finance/billing?bill={bill_id}&type={bill_type or 'general'}"


def normalize_billing(row: Row, idx: int, ctx: NormalizeContext) -> list[TimelineEvent]:
    bill_id = _text(row.get("id"))
    bill_type = _text(row.get("bill_type"))
    return _build(
        parse_instant(row.get("issued_at")),
        id=_event_id("bill", _row_key(row, idx)),
        type=TimelineEventType.BILLING,
        title=_text(row.get("bill_number")) or _text(row.get("bill_no")) or "Bill",
        subtitle=_labelled("Type", bill_type),
        amount=_amount(row.get("total")),
        status=_text(row.get("payment_status")),
        link=billing_link(bill_id, bill_type) if bill_id else None,
    )


def normalize_billing_payment(row: Row, idx: int, ctx: NormalizeContext) -> list[TimelineEvent]:
    parent = ctx.links.bill_display(row.get("billing_id"))
    return _build(
        first_instant(row.get("received_at"), row.get("paid_at")),
        id=_event_id("billing_payment", _row_key(row, idx)),
        type=TimelineEventType.BILLING_PAYMENT,
        title="Billing Payment",
        subtitle=_upper(row.get("method")),
        amount=_amount(row.get("amount")),
        reference=_text(row.get("reference")),
        link=f"/finance/billing?bill={parent}&type=payment" if parent else None,
    )


def normalize_other_bill(row: Row, idx: int, ctx: NormalizeContext) -> list[TimelineEvent]:
    bill_id = _text(row.get("id"))
    category = _text(row.get("charge_category"))
    return _build(
        parse_instant(row.get("bill_date")),
        id=_event_id("other_bill", _row_key(row, idx)),
        type=TimelineEventType.OTHER_BILL,
        title=_text(row.get("bill_number")) or "Other Bill",
        subtitle=f"Category: {category.replace('_', ' ')}" if category else None,
        amount=_amount(row.get("total_amount")),
        status=_text(row.get("payment_status")),
        link=f"/other-bills?bill={bill_id}" if bill_id else None,
    )


def normalize_other_bill_payment(row: Row, idx: int, ctx: NormalizeContext) -> list[TimelineEvent]:
    parent = ctx.links.other_bill_display(row.get("bill_id"))
    return _build(
        parse_instant(row.get("payment_date")),
        id=_event_id("other_bill_payment", _row_key(row, idx)),
        type=TimelineEventType.OTHER_BILL_PAYMENT,
        title="Other Bill Payment",
        subtitle=_upper(row.get("payment_method")),
        amount=_amount(row.get("payment_amount")),
        reference=_text(row.get("transaction_reference")),
        link=f"/other-bills?bill={parent}" if parent else None,
    )


def normalize_ip_payment(row: Row, idx: int, ctx: NormalizeContext) -> list[TimelineEvent]:
    key = _row_key(row, idx)
    allocation_id = ctx.links.admission_for(row.get("bed_allocation_id"))
    return _build(
        first_instant(row.get("payment_date"), row.get("created_at")),
        id=_event_id("ip_payment", key),
        type=TimelineEventType.IP_PAYMENT,
        title="IP Payment Receipt",
        subtitle=_upper(row.get("payment_type")),
        amount=_amount(row.get("amount")),
        reference=_text(row.get("reference_number")),
        link=_admission_link(ctx, _text(row.get("bed_allocation_id"))) or f"/billing/payments/{key}",
        bed_allocation_id=allocation_id,
    )


def normalize_pharmacy_bill(row: Row, idx: int, ctx: NormalizeContext) -> list[TimelineEvent]:
    key = _row_key(row, idx)
    when = parse_instant(row.get("created_at"))
    method = _upper(row.get("payment_method"))
    status = classify_payment_status(
        row.get("total_amount"), row.get("amount_paid"), row.get("payment_method"), ctx.tolerance
    )
    events = _build(
        when,
        id=_event_id("pharmacy_bill", key),
        type=TimelineEventType.PHARMACY_BILL,
        title=_text(row.get("bill_number")) or "Pharmacy Bill",
        subtitle=method,
        amount=_amount(row.get("total_amount")),
        status=status.value,
        link="/pharmacy/billing",
    )
    if status in (PaymentStatus.PAID, PaymentStatus.PARTIAL):
        events += _build(
            when,
            id=_event_id("pharmacy_payment", key),
            type=TimelineEventType.PHARMACY_BILL,
            title="Pharmacy Payment",
            subtitle=method,
            amount=_amount(row.get("amount_paid")),
            status=status.value,
            link="/pharmacy/billing",
        )
    return events


def normalize_medication(row: Row, idx: int, ctx: NormalizeContext) -> list[TimelineEvent]:
    details = [_text(row.get(column)) for column in ("generic_name", "dosage", "frequency", "duration")]
    if row.get("status") == "dispensed":
        author = f"Dispensed by {_text(row.get('dispensed_by')) or 'Unknown Pharmacist'}"
    else:
        author = f"Prescribed by {_text(row.get('prescribed_by')) or 'Unknown Doctor'}"
    return _build(
        first_instant(row.get("dispensed_date"), row.get("prescribed_date")),
        id=_event_id("med", _row_key(row, idx)),
        type=TimelineEventType.MEDICATION,
        title=_text(row.get("medication_name")) or "Medication",
        subtitle=" • ".join(d for d in details if d) or None,
        amount=_amount(row.get("total_amount")),
        status=_text(row.get("status")),
        content=author,
    )


def normalize_case_sheet(row: Row, idx: int, ctx: NormalizeContext) -> list[TimelineEvent]:
    return _build(
        first_instant(row.get("case_sheet_date"), row.get("created_at")),
        id=_event_id("case_sheet", _row_key(row, idx)),
        type=TimelineEventType.CASE_SHEET,
        title="Case Sheet",
        subtitle=_text(row.get("provisional_diagnosis")),
        bed_allocation_id=ctx.links.admission_for(row.get("bed_allocation_id")),
    )


def normalize_progress_note(row: Row, idx: int, ctx: NormalizeContext) -> list[TimelineEvent]:
    return _build(
        first_instant(row.get("note_date"), row.get("created_at")),
        id=_event_id("progress_note", _row_key(row, idx)),
        type=TimelineEventType.PROGRESS_NOTE,
        title="Progress Note",
        subtitle=_preview(row.get("content"), ctx.note_preview_chars),
        bed_allocation_id=ctx.links.admission_for(row.get("bed_allocation_id")),
        content=_text(row.get("content")),
    )


def normalize_doctor_order(row: Row, idx: int, ctx: NormalizeContext) -> list[TimelineEvent]:
    return _build(
        first_instant(row.get("order_date"), row.get("created_at")),
        id=_event_id("doctor_order", _row_key(row, idx)),
        type=TimelineEventType.DOCTOR_ORDER,
        title="Doctor Order",
        subtitle=_preview(row.get("assessment"), ctx.note_preview_chars),
        bed_allocation_id=ctx.links.admission_for(row.get("bed_allocation_id")),
        content=_text(row.get("treatment_instructions")),
    )


def normalize_nurse_record(row: Row, idx: int, ctx: NormalizeContext) -> list[TimelineEvent]:
    return _build(
        first_instant(row.get("entry_time"), row.get("created_at")),
        id=_event_id("nurse_record", _row_key(row, idx)),
        type=TimelineEventType.NURSE_RECORD,
        title="Nurse Record",
        subtitle=_preview(row.get("remark"), ctx.note_preview_chars),
        bed_allocation_id=ctx.links.admission_for(row.get("bed_allocation_id")),
        content=_text(row.get("remark")),
    )


def normalize_discharge_summary(row: Row, idx: int, ctx: NormalizeContext) -> list[TimelineEvent]:
    return _build(
        first_instant(row.get("discharge_date"), row.get("created_at")),
        id=_event_id("discharge_summary", _row_key(row, idx)),
        type=TimelineEventType.DISCHARGE_SUMMARY,
        title="Discharge Summary",
        subtitle=_text(row.get("final_diagnosis")),
        status=_text(row.get("status")),
        bed_allocation_id=ctx.links.admission_for(row.get("bed_allocation_id")),
    )


Normalizer = Callable[[Row, int, NormalizeContext], list[TimelineEvent]]

# Iteration order is the concatenation order, which is the tie-break for equal timestamps.
NORMALIZERS: dict[SourceCategory, Normalizer] = {
    SourceCategory.APPOINTMENTS: normalize_appointment,
    SourceCategory.ADMISSIONS: normalize_admission,
    SourceCategory.VITALS: normalize_vitals,
    SourceCategory.MEDICAL_HISTORY: normalize_medical_history,
    SourceCategory.LAB_ORDERS: normalize_lab_order,
    SourceCategory.RADIOLOGY_ORDERS: normalize_radiology_order,
    SourceCategory.XRAY_ORDERS: normalize_xray_order,
    SourceCategory.SCAN_ORDERS: normalize_scan_order,
    SourceCategory.BILLING: normalize_billing,
    SourceCategory.BILLING_PAYMENTS: normalize_billing_payment,
    SourceCategory.OTHER_BILLS: normalize_other_bill,
    SourceCategory.OTHER_BILL_PAYMENTS: normalize_other_bill_payment,
    SourceCategory.IP_PAYMENTS: normalize_ip_payment,
    SourceCategory.PHARMACY_BILLS: normalize_pharmacy_bill,
    SourceCategory.MEDICATIONS: normalize_medication,
    SourceCategory.CASE_SHEETS: normalize_case_sheet,
    SourceCategory.PROGRESS_NOTES: normalize_progress_note,
    SourceCategory.DOCTOR_ORDERS: normalize_doctor_order,
    SourceCategory.NURSE_RECORDS: normalize_nurse_record,
    SourceCategory.DISCHARGE_SUMMARIES: normalize_discharge_summary,
}


def normalize_rows(
    category: SourceCategory, rows: list[Row], ctx: NormalizeContext
) -> list[TimelineEvent]:
    normalize = NORMALIZERS[category]
    events: list[TimelineEvent] = []
    for idx, row in enumerate(rows):
        try:
            events.extend(normalize(row, idx, ctx))
        except (ValidationError, ValueError, TypeError, AttributeError, OverflowError) as exc:
            logger.warning("Skipping malformed %s row %s: %s", category.value, row.get("id"), exc)
    return events


def normalize_sources(sources: TimelineSources, ctx: NormalizeContext) -> list[TimelineEvent]:
    events: list[TimelineEvent] = []
    for category in NORMALIZERS:
        events.extend(normalize_rows(category, sources.rows(category), ctx))
    return events

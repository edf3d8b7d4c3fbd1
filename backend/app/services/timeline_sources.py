"""Per-category fetchers for the patient timeline.

Every fetcher is an independent read against the injected ``RecordStore``.
``gather_sources`` runs them concurrently and settles each one on its own:
a fetch that raises or times out contributes an empty collection and is
reported in ``TimelineSources.failed``; it never cancels its siblings.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Sequence

from app.core.enums import SourceCategory
from app.services.record_store import Embed, RecordStore, Row, RowQuery

logger = logging.getLogger(__name__)

DEFAULT_FETCH_TIMEOUT_SECONDS = 10.0


@dataclass
class TimelineSources:
    admissions: list[Row] = field(default_factory=list)
    appointments: list[Row] = field(default_factory=list)
    vitals: list[Row] = field(default_factory=list)
    medical_history: list[Row] = field(default_factory=list)
    lab_orders: list[Row] = field(default_factory=list)
    radiology_orders: list[Row] = field(default_factory=list)
    xray_orders: list[Row] = field(default_factory=list)
    scan_orders: list[Row] = field(default_factory=list)
    billing: list[Row] = field(default_factory=list)
    billing_payments: list[Row] = field(default_factory=list)
    other_bills: list[Row] = field(default_factory=list)
    other_bill_payments: list[Row] = field(default_factory=list)
    ip_payments: list[Row] = field(default_factory=list)
    pharmacy_bills: list[Row] = field(default_factory=list)
    medications: list[Row] = field(default_factory=list)
    case_sheets: list[Row] = field(default_factory=list)
    progress_notes: list[Row] = field(default_factory=list)
    doctor_orders: list[Row] = field(default_factory=list)
    nurse_records: list[Row] = field(default_factory=list)
    discharge_summaries: list[Row] = field(default_factory=list)

    attempted: list[SourceCategory] = field(default_factory=list)
    failed: list[SourceCategory] = field(default_factory=list)

    def rows(self, category: SourceCategory) -> list[Row]:
        return getattr(self, category.value)

    @property
    def all_failed(self) -> bool:
        return bool(self.attempted) and len(self.failed) == len(self.attempted)


_TEST_CATALOG = Embed(name="test_catalog", table="test_catalog", foreign_key="test_id", columns=("test_name",))


async def fetch_admissions(store: RecordStore, patient_id: str) -> list[Row]:
    return await store.fetch_rows(
        RowQuery(
            table="bed_allocations",
            columns=(
                "id",
                "bed_id",
                "ip_number",
                "admission_date",
                "discharge_date",
                "discharge_reason",
                "status",
            ),
            equals={"patient_id": patient_id},
            order_by="admission_date",
            embeds=(Embed(name="bed", table="beds", foreign_key="bed_id", columns=("room_number", "bed_number")),),
        )
    )


async def fetch_appointments(store: RecordStore, patient_id: str) -> list[Row]:
    return await store.fetch_rows(
        RowQuery(
            table="appointments",
            columns=("id", "type", "status", "appointment_date", "appointment_time", "created_at"),
            equals={"patient_id": patient_id},
            order_by="appointment_date",
        )
    )


async def fetch_vitals(store: RecordStore, patient_id: str) -> list[Row]:
    return await store.fetch_rows(
        RowQuery(
            table="vitals",
            columns=("id", "recorded_by", "recorded_at"),
            equals={"patient_id": patient_id},
            order_by="recorded_at",
            embeds=(Embed(name="recorded_by_user", table="users", foreign_key="recorded_by", columns=("name",)),),
        )
    )


async def fetch_medical_history(store: RecordStore, patient_id: str) -> list[Row]:
    return await store.fetch_rows(
        RowQuery(
            table="medical_history",
            columns=("id", "event_name", "event_type", "event_date"),
            equals={"patient_id": patient_id},
            order_by="event_date",
        )
    )


async def fetch_lab_orders(store: RecordStore, patient_id: str) -> list[Row]:
    return await store.fetch_rows(
        RowQuery(
            table="lab_orders",
            columns=("id", "test_id", "status", "created_at"),
            equals={"patient_id": patient_id},
            order_by="created_at",
            embeds=(_TEST_CATALOG,),
        )
    )


async def fetch_radiology_orders(store: RecordStore, patient_id: str) -> list[Row]:
    return await store.fetch_rows(
        RowQuery(
            table="radiology_orders",
            columns=("id", "test_id", "status", "created_at"),
            equals={"patient_id": patient_id},
            order_by="created_at",
            embeds=(_TEST_CATALOG,),
        )
    )


async def fetch_xray_orders(store: RecordStore, patient_id: str) -> list[Row]:
    return await store.fetch_rows(
        RowQuery(
            table="xray_orders",
            columns=("id", "scan_name", "body_part", "status", "created_at", "ordered_at"),
            equals={"patient_id": patient_id},
            order_by="created_at",
        )
    )


async def fetch_scan_orders(store: RecordStore, patient_id: str) -> list[Row]:
    return await store.fetch_rows(
        RowQuery(
            table="scan_orders",
            columns=("id", "scan_name", "scan_type", "status", "created_at", "ordered_date"),
            equals={"patient_id": patient_id},
            order_by="created_at",
        )
    )


async def fetch_billing(store: RecordStore, patient_id: str) -> list[Row]:
    return await store.fetch_rows(
        RowQuery(
            table="billing",
            columns=("id", "bill_number", "bill_no", "bill_type", "issued_at", "total", "payment_status"),
            equals={"patient_id": patient_id},
            not_equals={"bill_type": "pharmacy"},
            order_by="issued_at",
        )
    )


async def fetch_billing_payments(store: RecordStore, billing_ids: Sequence[str]) -> list[Row]:
    if not billing_ids:
        return []
    return await store.fetch_rows(
        RowQuery(
            table="billing_payments",
            columns=("id", "billing_id", "amount", "method", "reference", "received_at", "paid_at"),
            within={"billing_id": list(billing_ids)},
            order_by="paid_at",
        )
    )


async def fetch_other_bills(store: RecordStore, patient_id: str) -> list[Row]:
    return await store.fetch_rows(
        RowQuery(
            table="other_bills",
            columns=("id", "bill_number", "bill_date", "charge_category", "total_amount", "payment_status"),
            equals={"patient_id": patient_id, "status": "active"},
            order_by="bill_date",
        )
    )


async def fetch_other_bill_payments(store: RecordStore, bill_ids: Sequence[str]) -> list[Row]:
    if not bill_ids:
        return []
    return await store.fetch_rows(
        RowQuery(
            table="other_bill_payments",
            columns=(
                "id",
                "bill_id",
                "payment_amount",
                "payment_method",
                "transaction_reference",
                "payment_date",
            ),
            within={"bill_id": list(bill_ids)},
            order_by="payment_date",
        )
    )


async def fetch_ip_payments(store: RecordStore, patient_id: str) -> list[Row]:
    return await store.fetch_rows(
        RowQuery(
            table="ip_payment_receipts",
            columns=(
                "id",
                "bed_allocation_id",
                "amount",
                "payment_type",
                "reference_number",
                "payment_date",
                "created_at",
            ),
            equals={"patient_id": patient_id},
            order_by="payment_date",
        )
    )


async def fetch_pharmacy_bills(store: RecordStore, patient_id: str) -> list[Row]:
    return await store.fetch_rows(
        RowQuery(
            table="billing",
            columns=("id", "bill_number", "created_at", "total_amount", "amount_paid", "payment_method"),
            equals={"patient_id": patient_id, "bill_type": "pharmacy"},
            order_by="created_at",
        )
    )


async def fetch_medications(store: RecordStore, patient_id: str) -> list[Row]:
    """Prescribed and dispensed items flattened into one medication history."""
    prescriptions, dispensed = await asyncio.gather(
        store.fetch_rows(
            RowQuery(
                table="prescriptions",
                columns=("id", "doctor_id", "created_at"),
                equals={"patient_id": patient_id},
                order_by="created_at",
                embeds=(Embed(name="doctor", table="users", foreign_key="doctor_id", columns=("name",)),),
            )
        ),
        store.fetch_rows(
            RowQuery(
                table="prescription_dispensed",
                columns=("id", "pharmacist_id", "dispensed_date"),
                equals={"patient_id": patient_id},
                order_by="dispensed_date",
                embeds=(Embed(name="pharmacist", table="users", foreign_key="pharmacist_id", columns=("name",)),),
            )
        ),
    )

    medication_embed = Embed(
        name="medication", table="medications", foreign_key="medication_id", columns=("name", "generic_name")
    )
    prescription_items, dispensed_items = await asyncio.gather(
        fetch_related(
            store,
            "prescription_items",
            ("id", "prescription_id", "medication_id", "dosage", "frequency", "duration"),
            "prescription_id",
            [p["id"] for p in prescriptions if p.get("id")],
            medication_embed,
        ),
        fetch_related(
            store,
            "prescription_dispensed_items",
            ("id", "dispensed_id", "medication_id", "dispensed_quantity", "total_price"),
            "dispensed_id",
            [d["id"] for d in dispensed if d.get("id")],
            medication_embed,
        ),
    )

    by_prescription = {p["id"]: p for p in prescriptions}
    by_dispense = {d["id"]: d for d in dispensed}
    history: list[Row] = []

    for item in prescription_items:
        prescription = by_prescription.get(item.get("prescription_id")) or {}
        medication = item.get("medication") or {}
        doctor = prescription.get("doctor") or {}
        history.append(
            {
                "id": f"presc_{prescription.get('id')}_{item.get('id')}",
                "medication_name": medication.get("name") or "Unknown",
                "generic_name": medication.get("generic_name") or "",
                "dosage": item.get("dosage") or "",
                "frequency": item.get("frequency") or "",
                "duration": item.get("duration") or "",
                "prescribed_date": prescription.get("created_at"),
                "dispensed_date": None,
                "prescribed_by": doctor.get("name") or "Unknown Doctor",
                "status": "prescribed",
            }
        )

    for item in dispensed_items:
        dispense = by_dispense.get(item.get("dispensed_id")) or {}
        medication = item.get("medication") or {}
        pharmacist = dispense.get("pharmacist") or {}
        history.append(
            {
                "id": f"disp_{dispense.get('id')}_{item.get('id')}",
                "medication_name": medication.get("name") or "Unknown",
                "generic_name": medication.get("generic_name") or "",
                "frequency": f"Qty: {item.get('dispensed_quantity')}",
                "prescribed_date": None,
                "dispensed_date": dispense.get("dispensed_date"),
                "dispensed_by": pharmacist.get("name") or "Unknown Pharmacist",
                "status": "dispensed",
                "total_amount": item.get("total_price"),
            }
        )
    return history


async def fetch_related(
    store: RecordStore,
    table: str,
    columns: tuple[str, ...],
    parent_key: str,
    parent_ids: Sequence[str],
    *embeds: Embed,
) -> list[Row]:
    if not parent_ids:
        return []
    return await store.fetch_rows(
        RowQuery(table=table, columns=columns, within={parent_key: list(parent_ids)}, embeds=embeds)
    )


CLINICAL_RECORD_QUERIES: dict[SourceCategory, tuple[str, tuple[str, ...], str]] = {
    SourceCategory.CASE_SHEETS: (
        "ip_case_sheets",
        ("id", "bed_allocation_id", "case_sheet_date", "provisional_diagnosis", "created_at"),
        "case_sheet_date",
    ),
    SourceCategory.PROGRESS_NOTES: (
        "ip_progress_notes",
        ("id", "bed_allocation_id", "note_date", "content", "created_at"),
        "note_date",
    ),
    SourceCategory.DOCTOR_ORDERS: (
        "ip_doctor_orders",
        ("id", "bed_allocation_id", "order_date", "assessment", "treatment_instructions", "created_at"),
        "order_date",
    ),
    SourceCategory.NURSE_RECORDS: (
        "ip_nurse_records",
        ("id", "bed_allocation_id", "entry_time", "remark", "created_at"),
        "entry_time",
    ),
    SourceCategory.DISCHARGE_SUMMARIES: (
        "ip_discharge_summaries",
        ("id", "bed_allocation_id", "discharge_date", "final_diagnosis", "status", "created_at"),
        "discharge_date",
    ),
}


async def fetch_clinical_records(
    store: RecordStore, category: SourceCategory, bed_allocation_ids: Sequence[str]
) -> list[Row]:
    if not bed_allocation_ids:
        return []
    table, columns, order_by = CLINICAL_RECORD_QUERIES[category]
    return await store.fetch_rows(
        RowQuery(
            table=table,
            columns=columns,
            within={"bed_allocation_id": list(bed_allocation_ids)},
            order_by=order_by,
        )
    )


async def _settle(
    category: SourceCategory, fetch: Awaitable[list[Row]], timeout: float
) -> tuple[SourceCategory, list[Row] | None]:
    try:
        rows = await asyncio.wait_for(fetch, timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning("Timeline source %s timed out after %.1fs", category.value, timeout)
        return category, None
    except Exception as exc:
        logger.warning("Timeline source %s failed: %s", category.value, exc)
        return category, None
    return category, list(rows or [])


async def _settle_all(
    sources: TimelineSources,
    fetches: dict[SourceCategory, Awaitable[list[Row]]],
    timeout: float,
) -> None:
    results = await asyncio.gather(
        *(_settle(category, fetch, timeout) for category, fetch in fetches.items())
    )
    for category, rows in results:
        sources.attempted.append(category)
        if rows is None:
            sources.failed.append(category)
            continue
        setattr(sources, category.value, rows)


async def gather_sources(
    store: RecordStore,
    patient_id: str,
    *,
    admissions: list[Row] | None = None,
    include_clinical_records: bool = True,
    timeout: float = DEFAULT_FETCH_TIMEOUT_SECONDS,
) -> TimelineSources:
    """Fetch every source category for one patient.

    Runs in two waves. The first wave reads everything keyed by patient id
    (and the admissions themselves unless the caller already has them). The
    second wave reads the rows keyed by first-wave ids: payments by bill id
    and clinical records by admission id.
    """
    sources = TimelineSources()

    first_wave: dict[SourceCategory, Awaitable[list[Row]]] = {
        SourceCategory.APPOINTMENTS: fetch_appointments(store, patient_id),
        SourceCategory.VITALS: fetch_vitals(store, patient_id),
        SourceCategory.MEDICAL_HISTORY: fetch_medical_history(store, patient_id),
        SourceCategory.LAB_ORDERS: fetch_lab_orders(store, patient_id),
        SourceCategory.RADIOLOGY_ORDERS: fetch_radiology_orders(store, patient_id),
        SourceCategory.XRAY_ORDERS: fetch_xray_orders(store, patient_id),
        SourceCategory.SCAN_ORDERS: fetch_scan_orders(store, patient_id),
        SourceCategory.BILLING: fetch_billing(store, patient_id),
        SourceCategory.OTHER_BILLS: fetch_other_bills(store, patient_id),
        SourceCategory.IP_PAYMENTS: fetch_ip_payments(store, patient_id),
        SourceCategory.PHARMACY_BILLS: fetch_pharmacy_bills(store, patient_id),
        SourceCategory.MEDICATIONS: fetch_medications(store, patient_id),
    }
    if admissions is None:
        first_wave[SourceCategory.ADMISSIONS] = fetch_admissions(store, patient_id)
    else:
        sources.admissions = list(admissions)
    await _settle_all(sources, first_wave, timeout)

    billing_ids = [row["id"] for row in sources.billing if row.get("id")]
    other_bill_ids = [row["id"] for row in sources.other_bills if row.get("id")]
    allocation_ids = [row["id"] for row in sources.admissions if row.get("id")]

    second_wave: dict[SourceCategory, Awaitable[list[Row]]] = {}
    if billing_ids:
        second_wave[SourceCategory.BILLING_PAYMENTS] = fetch_billing_payments(store, billing_ids)
    if other_bill_ids:
        second_wave[SourceCategory.OTHER_BILL_PAYMENTS] = fetch_other_bill_payments(store, other_bill_ids)
    if include_clinical_records and allocation_ids:
        for category in CLINICAL_RECORD_QUERIES:
            second_wave[category] = fetch_clinical_records(store, category, allocation_ids)
    if second_wave:
        await _settle_all(sources, second_wave, timeout)

    logger.debug(
        "Fetched timeline sources for patient %s (failed: %s)",
        patient_id,
        ", ".join(c.value for c in sources.failed) or "none",
    )
    return sources

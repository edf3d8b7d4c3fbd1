from __future__ import annotations

import asyncio
import os
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

os.environ["DATABASE_URL"] = "sqlite:///./test_ward_his.db"
os.environ["ENVIRONMENT"] = "development"
os.environ["CORS_ALLOWED_ORIGINS"] = "http://localhost:3000"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["TIMELINE_FETCH_TIMEOUT_SECONDS"] = "2"

from app.core.config import get_settings
get_settings.cache_clear()
from app.core.rate_limit import limiter
from app.db.base import Base
from app.db.session import SessionLocal, engine
from app.main import app
from app.services.record_store import RecordStoreError

TEST_DB_PATH = Path("test_ward_his.db")


class InMemoryRecordStore:
    """RecordStore over plain dict rows, with optional failing or slow tables."""

    def __init__(self, tables: dict[str, list[dict]], failing=(), slow=(), delay: float = 5.0):
        self.tables = tables
        self.failing = set(failing)
        self.slow = set(slow)
        self.delay = delay
        self.queries = []

    async def fetch_rows(self, query):
        self.queries.append(query)
        if query.table in self.slow:
            await asyncio.sleep(self.delay)
        if query.table in self.failing:
            raise RecordStoreError(f"relation {query.table} is unavailable")

        rows = [dict(r) for r in self.tables.get(query.table, [])]
        for name, value in query.equals.items():
            rows = [r for r in rows if r.get(name) == value]
        for name, value in query.not_equals.items():
            rows = [r for r in rows if r.get(name) is not None and r.get(name) != value]
        for name, values in query.within.items():
            rows = [r for r in rows if r.get(name) in set(values)]
        if query.order_by:
            rows.sort(key=lambda r: str(r.get(query.order_by) or ""), reverse=query.descending)

        projected = [{c: r.get(c) for c in query.columns} for r in rows]
        for embed in query.embeds:
            related = {r["id"]: r for r in self.tables.get(embed.table, [])}
            for row in projected:
                match = related.get(row.get(embed.foreign_key))
                row[embed.name] = {c: match.get(c) for c in ("id", *embed.columns)} if match else None
        return projected


def patient_tables(patient_id: str = "p-1") -> dict[str, list[dict]]:
    """One row in every source table, each on its own day in January 2024."""
    return {
        "bed_allocations": [
            {
                "id": "ba-1",
                "patient_id": patient_id,
                "bed_id": "bed-1",
                "ip_number": "IP-2024-001",
                "admission_date": "2024-01-10T08:00:00Z",
                "discharge_date": "2024-01-14T10:00:00Z",
                "discharge_reason": "Recovered",
                "status": "discharged",
            }
        ],
        "beds": [{"id": "bed-1", "room_number": "204", "bed_number": None}],
        "appointments": [
            {
                "id": "ap-1",
                "patient_id": patient_id,
                "type": "consultation",
                "status": "completed",
                "appointment_date": "2024-01-02",
                "appointment_time": "10:30:00",
                "created_at": "2024-01-01T09:00:00Z",
            }
        ],
        "users": [{"id": "u-1", "name": "Nurse Joy"}, {"id": "u-2", "name": "Dr. Rao"}],
        "vitals": [{"id": "v-1", "patient_id": patient_id, "recorded_by": "u-1", "recorded_at": "2024-01-03T07:00:00Z"}],
        "medical_history": [
            {"id": "mh-1", "patient_id": patient_id, "event_name": "Appendectomy", "event_type": "surgery", "event_date": "2024-01-04"}
        ],
        "test_catalog": [{"id": "tc-1", "test_name": "CBC"}, {"id": "tc-2", "test_name": "Chest CT"}],
        "lab_orders": [{"id": "lab-1", "patient_id": patient_id, "test_id": "tc-1", "status": "completed", "created_at": "2024-01-05T06:00:00Z"}],
        "radiology_orders": [
            {"id": "rad-1", "patient_id": patient_id, "test_id": "tc-2", "status": "ordered", "created_at": "2024-01-06T06:00:00Z"}
        ],
        "xray_orders": [{"id": "xr-1", "patient_id": patient_id, "body_part": "Left wrist", "status": "done", "created_at": "2024-01-07T06:00:00Z"}],
        "scan_orders": [{"id": "sc-1", "patient_id": patient_id, "scan_type": "USG Abdomen", "created_at": "2024-01-08T06:00:00Z"}],
        "billing": [
            {
                "id": "bill-1",
                "patient_id": patient_id,
                "bill_number": "BL-0001",
                "bill_type": "consultation",
                "issued_at": "2024-01-02T11:00:00Z",
                "total": 500,
                "payment_status": "paid",
            },
            {
                "id": "ph-1",
                "patient_id": patient_id,
                "bill_number": "PH-0001",
                "bill_type": "pharmacy",
                "created_at": "2024-01-09T12:00:00Z",
                "total_amount": 199.6,
                "amount_paid": 200,
                "payment_method": "cash",
            },
        ],
        "billing_payments": [
            {"id": "bp-1", "billing_id": "bill-1", "amount": 500, "method": "upi", "reference": "UPI123", "paid_at": "2024-01-02T11:05:00Z"}
        ],
        "other_bills": [
            {
                "id": "ob-1",
                "patient_id": patient_id,
                "bill_number": "OB-0001",
                "bill_date": "2024-01-11T09:00:00Z",
                "charge_category": "ambulance_charges",
                "total_amount": 1200,
                "payment_status": "pending",
                "status": "active",
            }
        ],
        "other_bill_payments": [
            {"id": "obp-1", "bill_id": "ob-1", "payment_amount": 600, "payment_method": "card", "payment_date": "2024-01-11T09:30:00Z"}
        ],
        "ip_payment_receipts": [
            {
                "id": "ipr-1",
                "patient_id": patient_id,
                "bed_allocation_id": "ba-1",
                "amount": 10000,
                "payment_type": "advance",
                "payment_date": "2024-01-10T09:00:00Z",
            }
        ],
        "prescriptions": [{"id": "rx-1", "patient_id": patient_id, "doctor_id": "u-2", "created_at": "2024-01-12T10:00:00Z"}],
        "prescription_items": [{"id": "rxi-1", "prescription_id": "rx-1", "medication_id": "m-1", "dosage": "500mg"}],
        "medications": [{"id": "m-1", "name": "Paracetamol", "generic_name": "Acetaminophen"}],
        "prescription_dispensed": [],
        "prescription_dispensed_items": [],
        "ip_case_sheets": [
            {"id": "cs-1", "bed_allocation_id": "ba-1", "case_sheet_date": "2024-01-10T10:00:00Z", "provisional_diagnosis": "Dengue"}
        ],
        "ip_progress_notes": [
            {"id": "pn-1", "bed_allocation_id": "ba-1", "note_date": "2024-01-11T10:00:00Z", "content": "Platelets improving"}
        ],
        "ip_doctor_orders": [],
        "ip_nurse_records": [],
        "ip_discharge_summaries": [],
    }


@pytest.fixture()
def make_store():
    def _make(tables=None, **kwargs) -> InMemoryRecordStore:
        return InMemoryRecordStore(patient_tables() if tables is None else tables, **kwargs)

    return _make


@pytest.fixture()
def settings():
    return get_settings()


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    storage = getattr(limiter, "_storage", None)
    if storage and hasattr(storage, "reset"):
        storage.reset()
    yield


@pytest.fixture(autouse=True)
def reset_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture()
def db():
    with SessionLocal() as session:
        yield session


@pytest.fixture()
def client() -> TestClient:
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture(scope="session", autouse=True)
def cleanup_db_file():
    yield
    engine.dispose()
    if TEST_DB_PATH.exists():
        TEST_DB_PATH.unlink()

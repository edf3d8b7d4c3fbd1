from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone

import pytest

from app.core.enums import SourceCategory, TimelineEventType
from app.services.timeline_links import build_link_index
from app.services.timeline_normalizers import (
    NormalizeContext,
    billing_link,
    normalize_admission,
    normalize_appointment,
    normalize_billing_payment,
    normalize_ip_payment,
    normalize_lab_order,
    normalize_medication,
    normalize_other_bill_payment,
    normalize_pharmacy_bill,
    normalize_progress_note,
    normalize_rows,
    normalize_vitals,
    normalize_xray_order,
    parse_instant,
)

IST = timezone(timedelta(hours=5, minutes=30))


def _ctx(**kwargs) -> NormalizeContext:
    return NormalizeContext(patient_display_id="UH-100", clinic_timezone=IST, **kwargs)


@pytest.mark.parametrize(
    "value,expected",
    [
        ("2024-01-01T10:00:00Z", datetime(2024, 1, 1, 10, tzinfo=timezone.utc)),
        ("2024-01-01T15:30:00+05:30", datetime(2024, 1, 1, 10, tzinfo=timezone.utc)),
        ("2024-01-01", datetime(2024, 1, 1, tzinfo=timezone.utc)),
        (date(2024, 1, 1), datetime(2024, 1, 1, tzinfo=timezone.utc)),
        (datetime(2024, 1, 1, 10), datetime(2024, 1, 1, 10, tzinfo=timezone.utc)),
    ],
)
def test_parse_instant_accepts_store_timestamps(value, expected):
    assert parse_instant(value) == expected


@pytest.mark.parametrize("value", [None, "", "   ", "not-a-date", "2024-13-45", 12345, True])
def test_parse_instant_rejects_garbage(value):
    assert parse_instant(value) is None


@pytest.mark.parametrize(
    "value",
    ["0001-01-01T00:00:00+05:30", "0001-01-01T00:00:00Z", "9999-12-31T23:00:00Z", datetime.max],
)
def test_parse_instant_rejects_instants_at_the_edge_of_the_calendar(value):
    assert parse_instant(value) is None


def test_out_of_range_timestamp_skips_only_its_row():
    rows = [
        {"id": "mh-1", "event_name": "Appendectomy", "event_date": "0001-01-01T00:00:00+05:30"},
        {"id": "mh-2", "event_name": "Asthma", "event_date": "2019-06-01"},
    ]
    events = normalize_rows(SourceCategory.MEDICAL_HISTORY, rows, _ctx())
    assert [e.id for e in events] == ["med_history:mh-2"]


def test_appointment_slot_is_read_in_clinic_time():
    (event,) = normalize_appointment(
        {"id": "ap-1", "type": "follow-up", "status": "booked", "appointment_date": date(2024, 1, 2), "appointment_time": time(10, 30)},
        0,
        _ctx(),
    )
    assert event.date == datetime(2024, 1, 2, 5, 0, tzinfo=timezone.utc)
    assert event.title == "OP: follow-up"
    assert event.subtitle == "Status: booked"
    assert event.link == "/appointments/ap-1"


def test_appointment_without_slot_falls_back_to_created_at():
    (event,) = normalize_appointment({"id": "ap-2", "created_at": "2024-01-05T09:00:00Z"}, 0, _ctx())
    assert event.title == "OP Appointment"
    assert event.date == datetime(2024, 1, 5, 9, tzinfo=timezone.utc)


def test_undated_rows_produce_no_event():
    assert normalize_vitals({"id": "v-1", "recorded_at": None}, 0, _ctx()) == []
    assert normalize_xray_order({"id": "x-1", "created_at": "garbage", "ordered_at": None}, 0, _ctx()) == []


def test_date_priority_skips_unparseable_candidates():
    (event,) = normalize_xray_order(
        {"id": "x-1", "created_at": "garbage", "ordered_at": "2024-02-01T00:00:00Z"}, 0, _ctx()
    )
    assert event.date == datetime(2024, 2, 1, tzinfo=timezone.utc)
    assert event.title == "X-ray"


def test_admission_emits_admission_and_discharge_with_placeholders():
    events = normalize_admission(
        {
            "id": "ba-1",
            "ip_number": "IP-9",
            "admission_date": "2024-01-10T08:00:00Z",
            "discharge_date": "2024-01-14T10:00:00Z",
            "discharge_reason": "Recovered",
            "status": "discharged",
            "bed": {"room_number": "204", "bed_number": None},
        },
        0,
        _ctx(),
    )
    admission, discharge = events
    assert admission.type == TimelineEventType.IP_ADMISSION
    assert admission.title == "IP IP-9"
    assert admission.subtitle == "Room 204 • Bed N/A"
    assert admission.bed_allocation_id == "ba-1"
    assert admission.link == "/patients/UH-100?tab=clinical-records&allocation=ba-1"
    assert discharge.type == TimelineEventType.IP_DISCHARGE
    assert discharge.title == "IP IP-9 Discharged"
    assert discharge.status == "discharged"
    assert discharge.subtitle == "Reason: Recovered"


def test_lab_order_without_catalog_uses_generic_title():
    (event,) = normalize_lab_order({"id": "lab-1", "test_catalog": None, "created_at": "2024-01-05"}, 0, _ctx())
    assert event.title == "Lab Order"
    assert event.link == "/lab-xray/order/lab-1"


@pytest.mark.parametrize(
    "bill_type,expected",
    [
        ("lab", "/lab-xray/order/b1"),
        ("scan", "/lab-xray/order/b1"),
        ("op", "/finance/billing?bill=b1&type=consultation"),
        ("ipd", "/finance/billing?bill=b1&type=ipd"),
        (None, "/finance/billing?bill=b1&type=general"),
    ],
)
def test_billing_link_follows_bill_type(bill_type, expected):
    assert billing_link("b1", bill_type) == expected


def test_payments_link_to_parent_bill_number_without_copying_its_amount():
    links = build_link_index(
        billing=[{"id": "bill-1", "bill_number": "BL-0001", "total": 900}],
        other_bills=[{"id": "ob-1", "bill_number": "OB-0001"}],
    )
    ctx = _ctx(links=links)

    (payment,) = normalize_billing_payment(
        {"id": "bp-1", "billing_id": "bill-1", "amount": 300, "method": "upi", "paid_at": "2024-01-02"}, 0, ctx
    )
    assert payment.link == "/finance/billing?bill=BL-0001&type=payment"
    assert payment.amount == 300
    assert payment.subtitle == "UPI"

    (other,) = normalize_other_bill_payment(
        {"id": "obp-1", "bill_id": "ob-1", "payment_amount": "150.50", "payment_date": "2024-01-03"}, 0, ctx
    )
    assert other.link == "/other-bills?bill=OB-0001"
    assert other.amount == 150.5


def test_ip_payment_attaches_to_known_admission_only():
    ctx = _ctx(links=build_link_index(admissions=[{"id": "ba-1"}]))
    (known,) = normalize_ip_payment({"id": "r1", "bed_allocation_id": "ba-1", "created_at": "2024-01-01"}, 0, ctx)
    (unknown,) = normalize_ip_payment({"id": "r2", "bed_allocation_id": None, "created_at": "2024-01-01"}, 1, ctx)
    assert known.bed_allocation_id == "ba-1"
    assert unknown.bed_allocation_id is None
    assert unknown.link == "/billing/payments/r2"


def test_pharmacy_bill_status_is_classified_and_payment_emitted():
    bill, payment = normalize_pharmacy_bill(
        {"id": "ph-1", "bill_number": "PH-1", "created_at": "2024-01-09", "total_amount": 199.6, "amount_paid": 200, "payment_method": "cash"},
        0,
        _ctx(),
    )
    assert bill.status == "paid"
    assert bill.amount == 199.6
    assert payment.id != bill.id
    assert payment.title == "Pharmacy Payment"
    assert payment.amount == 200


def test_credit_pharmacy_bill_has_no_payment_event():
    (bill,) = normalize_pharmacy_bill(
        {"id": "ph-2", "created_at": "2024-01-09", "total_amount": 300, "amount_paid": 300, "payment_method": "credit"},
        0,
        _ctx(),
    )
    assert bill.status == "pending"
    assert bill.title == "Pharmacy Bill"
    assert bill.subtitle == "CREDIT"


def test_progress_note_is_previewed_and_keeps_full_content():
    content = "Patient stable overnight, platelets trending upwards, continue IV fluids"
    ctx = _ctx(links=build_link_index(admissions=[{"id": "ba-1"}]))
    (note,) = normalize_progress_note(
        {"id": "pn-1", "bed_allocation_id": "ba-1", "note_date": "2024-01-11T10:00:00Z", "content": content}, 0, ctx
    )
    assert note.subtitle == content[:50] + "..."
    assert note.content == content
    assert note.bed_allocation_id == "ba-1"


def test_negative_amount_is_dropped_not_the_event():
    ctx = _ctx()
    (payment,) = normalize_billing_payment({"id": "bp-9", "amount": -10, "paid_at": "2024-01-02"}, 0, ctx)
    assert payment.amount is None
    assert payment.link is None


def test_one_bad_row_does_not_drop_the_category():
    rows = [
        {"id": "v-1", "recorded_at": "2024-01-01T00:00:00Z", "recorded_by_user": "not-a-dict"},
        {"id": "v-2", "recorded_at": "2024-01-02T00:00:00Z", "recorded_by_user": {"name": "Asha"}},
        {"id": "v-3", "recorded_at": None},
    ]
    events = normalize_rows(SourceCategory.VITALS, rows, _ctx())
    assert [e.id for e in events] == ["vitals:v-2"]
    assert events[0].subtitle == "By Asha"


def test_rows_without_ids_get_positional_keys():
    events = normalize_rows(
        SourceCategory.XRAY_ORDERS,
        [{"created_at": "2024-01-01"}, {"created_at": "2024-01-02"}],
        _ctx(),
    )
    assert [e.id for e in events] == ["xray:#0", "xray:#1"]


def test_positional_key_does_not_shadow_a_real_id():
    events = normalize_rows(
        SourceCategory.XRAY_ORDERS,
        [{"created_at": "2024-01-01"}, {"id": "row0", "created_at": "2024-01-02"}],
        _ctx(),
    )
    assert [e.id for e in events] == ["xray:#0", "xray:row0"]


def test_dispensed_medication_names_the_pharmacist_and_price():
    (event,) = normalize_medication(
        {
            "id": "disp_d-1_i-1",
            "medication_name": "Amoxicillin",
            "frequency": "Qty: 10",
            "dispensed_date": "2024-02-01T09:00:00Z",
            "dispensed_by": "Unknown Pharmacist",
            "status": "dispensed",
            "total_amount": "120.50",
        },
        0,
        _ctx(),
    )
    assert event.id == "med:disp_d-1_i-1"
    assert event.subtitle == "Qty: 10"
    assert event.amount == 120.5
    assert event.content == "Dispensed by Unknown Pharmacist"


def test_prescription_without_doctor_falls_back_to_unknown_doctor():
    (event,) = normalize_medication(
        {"id": "p-1", "medication_name": "Paracetamol", "prescribed_date": "2024-02-01", "status": "prescribed"},
        0,
        _ctx(),
    )
    assert event.subtitle is None
    assert event.content == "Prescribed by Unknown Doctor"

def test_events_are_immutable():
    (event,) = normalize_vitals({"id": "v-1", "recorded_at": "2024-01-01"}, 0, _ctx())
    with pytest.raises(Exception):
        event.title = "changed"

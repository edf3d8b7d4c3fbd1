from enum import Enum


class TimelineEventType(str, Enum):
    REGISTRATION = "registration"
    APPOINTMENT = "appointment"
    IP_ADMISSION = "ip_admission"
    IP_DISCHARGE = "ip_discharge"
    VITALS = "vitals"
    MEDICAL_HISTORY = "medical_history"
    LAB = "lab"
    RADIOLOGY = "radiology"
    XRAY = "xray"
    SCAN = "scan"
    BILLING = "billing"
    BILLING_PAYMENT = "billing_payment"
    IP_PAYMENT = "ip_payment"
    OTHER_BILL = "other_bill"
    OTHER_BILL_PAYMENT = "other_bill_payment"
    PHARMACY_BILL = "pharmacy_bill"
    MEDICATION = "medication"
    CASE_SHEET = "case_sheet"
    PROGRESS_NOTE = "progress_note"
    DOCTOR_ORDER = "doctor_order"
    NURSE_RECORD = "nurse_record"
    DISCHARGE_SUMMARY = "discharge_summary"


class SourceCategory(str, Enum):
    """One fetchable record source. Several event types may come from one source."""

    ADMISSIONS = "admissions"
    APPOINTMENTS = "appointments"
    VITALS = "vitals"
    MEDICAL_HISTORY = "medical_history"
    LAB_ORDERS = "lab_orders"
    RADIOLOGY_ORDERS = "radiology_orders"
    XRAY_ORDERS = "xray_orders"
    SCAN_ORDERS = "scan_orders"
    BILLING = "billing"
    BILLING_PAYMENTS = "billing_payments"
    OTHER_BILLS = "other_bills"
    OTHER_BILL_PAYMENTS = "other_bill_payments"
    IP_PAYMENTS = "ip_payments"
    PHARMACY_BILLS = "pharmacy_bills"
    MEDICATIONS = "medications"
    CASE_SHEETS = "case_sheets"
    PROGRESS_NOTES = "progress_notes"
    DOCTOR_ORDERS = "doctor_orders"
    NURSE_RECORDS = "nurse_records"
    DISCHARGE_SUMMARIES = "discharge_summaries"


class PaymentStatus(str, Enum):
    PAID = "paid"
    PENDING = "pending"
    PARTIAL = "partial"


class TimelineEntryKind(str, Enum):
    EVENT = "event"
    ADMISSION = "admission"

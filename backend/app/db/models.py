from __future__ import annotations

from datetime import date, datetime, time
from typing import Optional

from sqlalchemy import (
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Time,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import (
    AdmissionScopedMixin,
    Base,
    PatientScopedMixin,
    TimestampMixin,
    UUIDPrimaryKeyMixin,
)


def _money() -> Numeric:
    return Numeric(12, 2, asdecimal=False)


class User(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "users"

    email: Mapped[Optional[str]] = mapped_column(String(255), unique=True, nullable=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(32), default="STAFF", nullable=False)


class Patient(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "patients"

    uhid: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    gender: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    age: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

    bed_allocations = relationship("BedAllocation", back_populates="patient")
    appointments = relationship("Appointment", back_populates="patient")


class Bed(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "beds"

    room_number: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    bed_number: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)


class BedAllocation(Base, UUIDPrimaryKeyMixin, PatientScopedMixin, TimestampMixin):
    __tablename__ = "bed_allocations"

    bed_id: Mapped[Optional[str]] = mapped_column(ForeignKey("beds.id"), nullable=True)
    ip_number: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    admission_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    discharge_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    discharge_reason: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    status: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

    patient = relationship("Patient", back_populates="bed_allocations")
    bed = relationship("Bed")


class Appointment(Base, UUIDPrimaryKeyMixin, PatientScopedMixin, TimestampMixin):
    __tablename__ = "appointments"

    type: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    status: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    appointment_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    appointment_time: Mapped[Optional[time]] = mapped_column(Time, nullable=True)

    patient = relationship("Patient", back_populates="appointments")


class Vital(Base, UUIDPrimaryKeyMixin, PatientScopedMixin, TimestampMixin):
    __tablename__ = "vitals"

    recorded_by: Mapped[Optional[str]] = mapped_column(ForeignKey("users.id"), nullable=True)
    recorded_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    pulse: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    blood_pressure: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)


class MedicalHistory(Base, UUIDPrimaryKeyMixin, PatientScopedMixin, TimestampMixin):
    __tablename__ = "medical_history"

    event_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    event_type: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    event_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)


class TestCatalog(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "test_catalog"

    test_name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)


class LabOrder(Base, UUIDPrimaryKeyMixin, PatientScopedMixin, TimestampMixin):
    __tablename__ = "lab_orders"

    test_id: Mapped[Optional[str]] = mapped_column(ForeignKey("test_catalog.id"), nullable=True)
    status: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)


class RadiologyOrder(Base, UUIDPrimaryKeyMixin, PatientScopedMixin, TimestampMixin):
    __tablename__ = "radiology_orders"

    test_id: Mapped[Optional[str]] = mapped_column(ForeignKey("test_catalog.id"), nullable=True)
    status: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)


class XrayOrder(Base, UUIDPrimaryKeyMixin, PatientScopedMixin, TimestampMixin):
    __tablename__ = "xray_orders"

    scan_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    body_part: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    status: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    ordered_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class ScanOrder(Base, UUIDPrimaryKeyMixin, PatientScopedMixin, TimestampMixin):
    __tablename__ = "scan_orders"

    scan_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    scan_type: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    status: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    ordered_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class Billing(Base, UUIDPrimaryKeyMixin, PatientScopedMixin, TimestampMixin):
    """Hospital bills. Pharmacy counter bills share the table with bill_type='pharmacy'."""

    __tablename__ = "billing"

    bill_number: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    bill_no: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    bill_type: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    issued_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    total: Mapped[Optional[float]] = mapped_column(_money(), nullable=True)
    total_amount: Mapped[Optional[float]] = mapped_column(_money(), nullable=True)
    amount_paid: Mapped[Optional[float]] = mapped_column(_money(), nullable=True)
    payment_status: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    payment_method: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

    payments = relationship("BillingPayment", back_populates="billing")

    __table_args__ = (Index("ix_billing_patient_id_bill_type", "patient_id", "bill_type"),)


class BillingPayment(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "billing_payments"

    billing_id: Mapped[str] = mapped_column(ForeignKey("billing.id"), nullable=False, index=True)
    amount: Mapped[Optional[float]] = mapped_column(_money(), nullable=True)
    method: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    reference: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    received_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    billing = relationship("Billing", back_populates="payments")


class OtherBill(Base, UUIDPrimaryKeyMixin, PatientScopedMixin, TimestampMixin):
    __tablename__ = "other_bills"

    bill_number: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    bill_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    charge_category: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    total_amount: Mapped[Optional[float]] = mapped_column(_money(), nullable=True)
    payment_status: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    status: Mapped[str] = mapped_column(String(16), default="active", nullable=False)


class OtherBillPayment(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "other_bill_payments"

    bill_id: Mapped[str] = mapped_column(ForeignKey("other_bills.id"), nullable=False, index=True)
    payment_amount: Mapped[Optional[float]] = mapped_column(_money(), nullable=True)
    payment_method: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    transaction_reference: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    payment_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class IPPaymentReceipt(
    Base, UUIDPrimaryKeyMixin, PatientScopedMixin, AdmissionScopedMixin, TimestampMixin
):
    __tablename__ = "ip_payment_receipts"

    amount: Mapped[Optional[float]] = mapped_column(_money(), nullable=True)
    payment_type: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    reference_number: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    payment_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class Medication(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "medications"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    generic_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    strength: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    dosage_form: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)


class Prescription(Base, UUIDPrimaryKeyMixin, PatientScopedMixin, TimestampMixin):
    __tablename__ = "prescriptions"

    doctor_id: Mapped[Optional[str]] = mapped_column(ForeignKey("users.id"), nullable=True)

    items = relationship("PrescriptionItem", back_populates="prescription")


class PrescriptionItem(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "prescription_items"

    prescription_id: Mapped[str] = mapped_column(
        ForeignKey("prescriptions.id"), nullable=False, index=True
    )
    medication_id: Mapped[Optional[str]] = mapped_column(ForeignKey("medications.id"), nullable=True)
    dosage: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    frequency: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    duration: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    prescription = relationship("Prescription", back_populates="items")


class PrescriptionDispensed(Base, UUIDPrimaryKeyMixin, PatientScopedMixin, TimestampMixin):
    __tablename__ = "prescription_dispensed"

    pharmacist_id: Mapped[Optional[str]] = mapped_column(ForeignKey("users.id"), nullable=True)
    dispensed_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    total_amount: Mapped[Optional[float]] = mapped_column(_money(), nullable=True)
    payment_status: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)


class PrescriptionDispensedItem(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "prescription_dispensed_items"

    dispensed_id: Mapped[str] = mapped_column(
        ForeignKey("prescription_dispensed.id"), nullable=False, index=True
    )
    medication_id: Mapped[Optional[str]] = mapped_column(ForeignKey("medications.id"), nullable=True)
    dispensed_quantity: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    unit_price: Mapped[Optional[float]] = mapped_column(_money(), nullable=True)
    total_price: Mapped[Optional[float]] = mapped_column(_money(), nullable=True)


class IPCaseSheet(Base, UUIDPrimaryKeyMixin, AdmissionScopedMixin, TimestampMixin):
    __tablename__ = "ip_case_sheets"

    case_sheet_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    provisional_diagnosis: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class IPProgressNote(Base, UUIDPrimaryKeyMixin, AdmissionScopedMixin, TimestampMixin):
    __tablename__ = "ip_progress_notes"

    note_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    content: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class IPDoctorOrder(Base, UUIDPrimaryKeyMixin, AdmissionScopedMixin, TimestampMixin):
    __tablename__ = "ip_doctor_orders"

    order_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    assessment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    treatment_instructions: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class IPNurseRecord(Base, UUIDPrimaryKeyMixin, AdmissionScopedMixin, TimestampMixin):
    __tablename__ = "ip_nurse_records"

    entry_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    remark: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class IPDischargeSummary(Base, UUIDPrimaryKeyMixin, AdmissionScopedMixin, TimestampMixin):
    __tablename__ = "ip_discharge_summaries"

    discharge_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    final_diagnosis: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

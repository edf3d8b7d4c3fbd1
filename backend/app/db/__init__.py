from app.db.models import (
    Appointment,
    Bed,
    BedAllocation,
    Billing,
    BillingPayment,
    IPCaseSheet,
    IPDischargeSummary,
    IPDoctorOrder,
    IPNurseRecord,
    IPPaymentReceipt,
    IPProgressNote,
    LabOrder,
    MedicalHistory,
    Medication,
    OtherBill,
    OtherBillPayment,
    Patient,
    Prescription,
    PrescriptionDispensed,
    PrescriptionDispensedItem,
    PrescriptionItem,
    RadiologyOrder,
    ScanOrder,
    TestCatalog,
    User,
    Vital,
    XrayOrder,
)

__all__ = [
    "User",
    "Patient",
    "Bed",
    "BedAllocation",
    "Appointment",
    "Vital",
    "MedicalHistory",
    "TestCatalog",
    "LabOrder",
    "RadiologyOrder",
    "XrayOrder",
    "ScanOrder",
    "Billing",
    "BillingPayment",
    "OtherBill",
    "OtherBillPayment",
    "IPPaymentReceipt",
    "Medication",
    "Prescription",
    "PrescriptionItem",
    "PrescriptionDispensed",
    "PrescriptionDispensedItem",
    "IPCaseSheet",
    "IPProgressNote",
    "IPDoctorOrder",
    "IPNurseRecord",
    "IPDischargeSummary",
]

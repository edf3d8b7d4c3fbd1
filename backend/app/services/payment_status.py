import math
from dataclasses import dataclass

from app.core.enums import PaymentStatus


@dataclass(frozen=True)
class PaymentTolerance:
    # Paid amount vs. total rounded to the nearest whole unit (display rounding).
    rounded_total: float = 0.01
    # Paid amount vs. the raw ledger total (ledger rounding drift).
    raw_amount: float = 0.05


DEFAULT_TOLERANCE = PaymentTolerance()


def to_number(value) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def round_half_up(value: float) -> float:
    return float(math.floor(value + 0.5))


def classify_payment_status(
    total_amount,
    amount_paid,
    payment_method: str | None,
    tolerance: PaymentTolerance = DEFAULT_TOLERANCE,
) -> PaymentStatus:
    if str(payment_method or "").strip().lower() == "credit":
        return PaymentStatus.PENDING

    paid = to_number(amount_paid)
    if paid is None or paid <= 0:
        return PaymentStatus.PENDING

    total = to_number(total_amount)
    if total is None:
        return PaymentStatus.PENDING

    if (
        abs(round_half_up(total) - paid) <= tolerance.rounded_total
        or abs(total - paid) <= tolerance.raw_amount
    ):
        return PaymentStatus.PAID
    return PaymentStatus.PARTIAL

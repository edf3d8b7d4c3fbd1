import pytest

from app.core.enums import PaymentStatus
from app.services.payment_status import PaymentTolerance, classify_payment_status


def test_credit_method_is_always_pending():
    assert classify_payment_status(1000, 1000, "credit") == PaymentStatus.PENDING
    assert classify_payment_status(1000, 1000, " CREDIT ") == PaymentStatus.PENDING


def test_rounded_total_matches_paid_amount():
    assert classify_payment_status(199.6, 200, "cash") == PaymentStatus.PAID


def test_small_ledger_drift_counts_as_paid():
    assert classify_payment_status(500.03, 500, "upi") == PaymentStatus.PAID


def test_real_partial_payment():
    assert classify_payment_status(1000, 400, "cash") == PaymentStatus.PARTIAL


@pytest.mark.parametrize("paid", [0, -5, None])
def test_nothing_paid_is_pending(paid):
    assert classify_payment_status(1000, paid, "cash") == PaymentStatus.PENDING


@pytest.mark.parametrize(
    "total,paid",
    [
        ("abc", 100),
        (1000, "n/a"),
        (None, 100),
        (float("nan"), 100),
    ],
)
def test_malformed_amounts_fail_safe_to_pending(total, paid):
    assert classify_payment_status(total, paid, "cash") == PaymentStatus.PENDING


def test_numeric_strings_are_accepted():
    assert classify_payment_status("250.00", "250", None) == PaymentStatus.PAID


def test_half_units_round_up():
    # 198.5 rounds to 199, so a 199 payment is within the rounded-total tolerance.
    assert classify_payment_status(198.5, 199, "cash") == PaymentStatus.PAID


def test_drift_beyond_both_tolerances_is_partial():
    assert classify_payment_status(500.4, 500.2, "cash") == PaymentStatus.PARTIAL


def test_tolerances_are_configurable():
    strict = PaymentTolerance(rounded_total=0.0, raw_amount=0.0)
    assert classify_payment_status(500.03, 500.02, "upi") == PaymentStatus.PAID
    assert classify_payment_status(500.03, 500.02, "upi", strict) == PaymentStatus.PARTIAL

    loose = PaymentTolerance(rounded_total=0.01, raw_amount=1.0)
    assert classify_payment_status(500.9, 500, "upi", loose) == PaymentStatus.PAID

"""Cross-source relationships used while building timeline events.

Payments point at their parent bill by foreign key, and clinical records
point at their inpatient admission. ``LinkIndex`` is built once from the
parent rows so that child events can be constructed complete, with the
parent's display number in their link and the admission id attached.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from app.services.record_store import Row


def _key(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def _display_numbers(rows: Iterable[Row], *number_columns: str) -> dict[str, str]:
    numbers: dict[str, str] = {}
    for row in rows:
        bill_id = _key(row.get("id"))
        if bill_id is None:
            continue
        for column in number_columns:
            number = _key(row.get(column))
            if number:
                numbers[bill_id] = number
                break
    return numbers


@dataclass(frozen=True)
class LinkIndex:
    bill_numbers: Mapping[str, str] = field(default_factory=dict)
    other_bill_numbers: Mapping[str, str] = field(default_factory=dict)
    admission_ids: frozenset[str] = frozenset()

    def bill_display(self, billing_id: Any) -> str | None:
        key = _key(billing_id)
        if key is None:
            return None
        return self.bill_numbers.get(key, key)

    def other_bill_display(self, bill_id: Any) -> str | None:
        key = _key(bill_id)
        if key is None:
            return None
        return self.other_bill_numbers.get(key, key)

    def admission_for(self, bed_allocation_id: Any) -> str | None:
        key = _key(bed_allocation_id)
        if key is None or key not in self.admission_ids:
            return None
        return key


def build_link_index(
    *,
    admissions: Iterable[Row] = (),
    billing: Iterable[Row] = (),
    other_bills: Iterable[Row] = (),
) -> LinkIndex:
    return LinkIndex(
        bill_numbers=_display_numbers(billing, "bill_number", "bill_no"),
        other_bill_numbers=_display_numbers(other_bills, "bill_number"),
        admission_ids=frozenset(k for k in (_key(row.get("id")) for row in admissions) if k),
    )

from __future__ import annotations

from datetime import date, timedelta, timezone, tzinfo
from typing import Sequence

from app.core.enums import TimelineEntryKind, TimelineEventType
from app.schemas.timeline import TimelineDay, TimelineEntry, TimelineEvent

IST = timezone(timedelta(hours=5, minutes=30))


def group_by_admission(events: Sequence[TimelineEvent]) -> list[TimelineEntry]:
    """Collapse events sharing a bed allocation into one admission entry.

    The entry sits where its admission event sits in the input (or where the
    first member sits when the admission event itself is absent). Children
    keep input order; ``count`` covers every member including the head.
    """
    members: dict[str, list[TimelineEvent]] = {}
    for event in events:
        if event.bed_allocation_id:
            members.setdefault(event.bed_allocation_id, []).append(event)

    heads: dict[str, TimelineEvent] = {}
    for allocation_id, group in members.items():
        heads[allocation_id] = next(
            (e for e in group if e.type == TimelineEventType.IP_ADMISSION),
            group[0],
        )

    entries: list[TimelineEntry] = []
    for event in events:
        allocation_id = event.bed_allocation_id
        if not allocation_id:
            entries.append(TimelineEntry(kind=TimelineEntryKind.EVENT, event=event))
            continue
        head = heads[allocation_id]
        if event is not head:
            continue
        group = members[allocation_id]
        entries.append(
            TimelineEntry(
                kind=TimelineEntryKind.ADMISSION,
                event=head,
                children=[e for e in group if e is not head],
                count=len(group),
            )
        )
    return entries


def local_day(entry: TimelineEntry, tz: tzinfo) -> date:
    try:
        return entry.event.date.astimezone(tz).date()
    except OverflowError:
        return entry.event.date.date()


def group_by_day(entries: Sequence[TimelineEntry], tz: tzinfo = IST) -> list[TimelineDay]:
    buckets: dict[date, list[TimelineEntry]] = {}
    for entry in entries:
        buckets.setdefault(local_day(entry, tz), []).append(entry)
    return [
        TimelineDay(day=day, entries=buckets[day])
        for day in sorted(buckets, reverse=True)
    ]

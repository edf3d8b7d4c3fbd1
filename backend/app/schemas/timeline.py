from __future__ import annotations

from datetime import date

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field

from app.core.enums import SourceCategory, TimelineEntryKind, TimelineEventType


class TimelineEvent(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(min_length=1)
    type: TimelineEventType
    title: str
    subtitle: str | None = None
    date: AwareDatetime
    amount: float | None = Field(default=None, ge=0)
    status: str | None = None
    reference: str | None = None
    link: str | None = None
    bed_allocation_id: str | None = Field(default=None, alias="bedAllocationId")
    content: str | None = None


class TimelineEntry(BaseModel):
    """A top-level row: a single event, or an admission collapsed with its records."""

    kind: TimelineEntryKind
    event: TimelineEvent
    children: list[TimelineEvent] = Field(default_factory=list)
    count: int = 1
    expanded: bool = False


class TimelineDay(BaseModel):
    day: date
    entries: list[TimelineEntry]
    expanded: bool = True


class TimelineRead(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    patient_id: str
    patient_uhid: str
    events: list[TimelineEvent]
    admissions: list[TimelineEntry]
    days: list[TimelineDay]
    failed_sources: list[SourceCategory] = Field(default_factory=list)

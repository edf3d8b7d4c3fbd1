from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class PatientCreate(BaseModel):
    uhid: str = Field(min_length=3, max_length=64)
    name: str = Field(min_length=1, max_length=255)
    gender: str | None = Field(default=None, max_length=16)
    age: int | None = Field(default=None, ge=0, le=130)
    phone: str | None = Field(default=None, max_length=32)


class PatientRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    uhid: str
    name: str
    gender: str | None
    age: int | None
    phone: str | None
    created_at: datetime

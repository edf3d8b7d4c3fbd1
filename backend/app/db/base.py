from datetime import datetime
from typing import Optional
from uuid import uuid4

from sqlalchemy import DateTime, ForeignKey, MetaData, Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, declared_attr, mapped_column

convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=convention)


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)


class UUIDPrimaryKeyMixin:
    id: Mapped[str] = mapped_column(Uuid(as_uuid=False), primary_key=True, default=lambda: str(uuid4()))


class PatientScopedMixin:
    @declared_attr
    def patient_id(cls) -> Mapped[str]:
        return mapped_column(ForeignKey("patients.id"), nullable=False, index=True)


class AdmissionScopedMixin:
    """Clinical records written during one inpatient stay."""

    @declared_attr
    def bed_allocation_id(cls) -> Mapped[Optional[str]]:
        return mapped_column(ForeignKey("bed_allocations.id"), nullable=True, index=True)

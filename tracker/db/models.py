from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    String,
    DateTime,
    Boolean,
    ForeignKey,
    Enum,
    UniqueConstraint,
    Text,
    Index,
    Integer,
    Float,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

# --- SQLAlchemy base ---------------------------------------------------------

class Base(DeclarativeBase):
    """Declarative base for all models."""
    pass


def _uuid() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


# --- Enums -------------------------------------------------------------------

PLATFORMS = (
    "linkedin",
    "indeed",
    "glassdoor",
    "ziprecruiter",
    "monster",
    "careerbuilder",
    "dice",
    "company_site",
    "handshake",
    "angellist",   # AngelList / Wellfound
    "other",
)

JOB_STATUSES = (
    "Interested",
    "Applied",
    "Phone Screen",
    "Interview",
    "Offer",
    "Rejected",
)

DUPLICATE_STATUSES = ("pending", "merged", "dismissed")


# --- Models ------------------------------------------------------------------

class Job(Base):
    __tablename__ = "jobs"
    __table_args__ = (
        Index("ix_jobs_user_duplicate", "user_id", "is_duplicate"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    company_name: Mapped[str] = mapped_column(String(200), nullable=False)
    job_title: Mapped[str] = mapped_column(String(300), nullable=False)

    # Location: structured parts plus the free-text form users often type
    city: Mapped[Optional[str]] = mapped_column(String(120))
    state: Mapped[Optional[str]] = mapped_column(String(120))
    country: Mapped[Optional[str]] = mapped_column(String(120))
    location: Mapped[Optional[str]] = mapped_column(String(300))

    status: Mapped[str] = mapped_column(
        Enum(*JOB_STATUSES, name="job_status_enum", native_enum=False), default="Interested", nullable=False
    )
    posting_url: Mapped[Optional[str]] = mapped_column(String(600))
    description: Mapped[Optional[str]] = mapped_column(Text)
    applied_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    # Merge bookkeeping
    is_duplicate: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    merged_into_job_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("jobs.id", ondelete="SET NULL"), index=True
    )
    platform_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    platforms: Mapped[list["ApplicationPlatform"]] = relationship(
        back_populates="job", cascade="all, delete-orphan", order_by="ApplicationPlatform.applied_at.desc()"
    )

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<Job id={self.id} company={self.company_name!r} title={self.job_title!r}>"


class ApplicationPlatform(Base):
    """One job board (or company site) a job was applied through."""

    __tablename__ = "application_platforms"
    __table_args__ = (UniqueConstraint("job_id", "platform", name="uq_job_platform"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    job_id: Mapped[str] = mapped_column(ForeignKey("jobs.id", ondelete="CASCADE"), index=True)
    job: Mapped["Job"] = relationship(back_populates="platforms")

    platform: Mapped[str] = mapped_column(
        Enum(*PLATFORMS, name="platform_enum", native_enum=False), nullable=False
    )
    application_url: Mapped[Optional[str]] = mapped_column(String(600))
    platform_job_id: Mapped[Optional[str]] = mapped_column(String(120))
    applied_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<ApplicationPlatform job_id={self.job_id} platform={self.platform!r}>"


class JobDuplicate(Base):
    """A suggested duplicate pair; job_id_1 is the job detection ran for."""

    __tablename__ = "job_duplicates"
    __table_args__ = (
        UniqueConstraint("pair_key", name="uq_job_duplicate_pair"),
        Index("ix_job_duplicates_status", "status"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    job_id_1: Mapped[str] = mapped_column(ForeignKey("jobs.id", ondelete="CASCADE"), index=True)
    job_id_2: Mapped[str] = mapped_column(ForeignKey("jobs.id", ondelete="CASCADE"), index=True)
    job1: Mapped["Job"] = relationship(foreign_keys=[job_id_1])
    job2: Mapped["Job"] = relationship(foreign_keys=[job_id_2])
    # Both ids sorted and joined, so (a, b) and (b, a) share one key
    pair_key: Mapped[str] = mapped_column(String(80), nullable=False)

    similarity_score: Mapped[float] = mapped_column(Float, nullable=False)
    company_match: Mapped[float] = mapped_column(Float, nullable=False)
    title_match: Mapped[float] = mapped_column(Float, nullable=False)
    location_match: Mapped[float] = mapped_column(Float, nullable=False)
    date_match: Mapped[float] = mapped_column(Float, nullable=False)

    status: Mapped[str] = mapped_column(
        Enum(*DUPLICATE_STATUSES, name="duplicate_status_enum", native_enum=False),
        default="pending",
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<JobDuplicate {self.job_id_1}~{self.job_id_2} score={self.similarity_score:.3f} {self.status}>"

    @staticmethod
    def key_for(job_id_a: str, job_id_b: str) -> str:
        return "|".join(sorted((job_id_a, job_id_b)))


__all__ = [
    "Base",
    "Job",
    "ApplicationPlatform",
    "JobDuplicate",
    "PLATFORMS",
    "JOB_STATUSES",
    "DUPLICATE_STATUSES",
    "utcnow",
]

"""Row-level queries and writes for jobs, platforms and duplicate pairs.

Every job lookup is scoped by owner. Apart from `create_job`, helpers here
only flush; the calling service decides when to commit or roll back.
"""
from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional, Sequence

from sqlalchemy import func, or_, and_, select, update
from sqlalchemy.orm import Session, selectinload

from tracker.db.models import ApplicationPlatform, Job, JobDuplicate, utcnow


# --- jobs --------------------------------------------------------------------

def get_job_for_user(
    session: Session,
    user_id: str,
    job_id: str,
    *,
    for_update: bool = False,
) -> Optional[Job]:
    stmt = select(Job).where(Job.id == job_id, Job.user_id == user_id)
    if for_update:
        stmt = stmt.with_for_update()
    return session.execute(stmt).scalar_one_or_none()


def get_jobs_for_user(session: Session, user_id: str, job_ids: Iterable[str]) -> Sequence[Job]:
    ids = list(job_ids)
    if not ids:
        return []
    stmt = select(Job).where(Job.user_id == user_id, Job.id.in_(ids))
    return session.execute(stmt).scalars().all()


def list_candidate_jobs(session: Session, user_id: str, exclude_job_id: str) -> Sequence[Job]:
    """Active (non-duplicate) jobs of a user other than `exclude_job_id`."""
    stmt = (
        select(Job)
        .where(Job.user_id == user_id)
        .where(Job.is_duplicate.is_(False))
        .where(Job.id != exclude_job_id)
    )
    return session.execute(stmt).scalars().all()


def list_jobs(session: Session, user_id: str, *, include_duplicates: bool = False) -> Sequence[Job]:
    stmt = select(Job).where(Job.user_id == user_id)
    if not include_duplicates:
        stmt = stmt.where(Job.is_duplicate.is_(False))
    stmt = stmt.order_by(Job.applied_at.desc().nullslast(), Job.id.asc())
    return session.execute(stmt).scalars().all()


def list_jobs_with_platforms(session: Session, user_id: str) -> Sequence[Job]:
    stmt = (
        select(Job)
        .options(selectinload(Job.platforms))
        .where(Job.user_id == user_id)
        .where(Job.is_duplicate.is_(False))
        .order_by(Job.applied_at.desc().nullslast(), Job.id.asc())
    )
    return session.execute(stmt).scalars().all()


def create_job(session: Session, job_data: dict) -> Job:
    """Create a Job row owned by job_data['user_id'] and commit it."""
    job = Job(**job_data)
    session.add(job)
    session.commit()
    session.refresh(job)
    return job


def mark_job_duplicate(session: Session, job: Job, master_job_id: str) -> None:
    job.is_duplicate = True
    job.merged_into_job_id = master_job_id
    session.flush()


def repoint_merged_jobs(session: Session, from_job_id: str, to_job_id: str) -> int:
    """Move jobs previously merged into `from_job_id` over to `to_job_id`."""
    result = session.execute(
        update(Job)
        .where(Job.merged_into_job_id == from_job_id)
        .values(merged_into_job_id=to_job_id)
    )
    return result.rowcount or 0


# --- application platforms ---------------------------------------------------

def list_platforms(session: Session, job_id: str) -> Sequence[ApplicationPlatform]:
    stmt = (
        select(ApplicationPlatform)
        .where(ApplicationPlatform.job_id == job_id)
        .order_by(ApplicationPlatform.applied_at.desc(), ApplicationPlatform.id.asc())
    )
    return session.execute(stmt).scalars().all()


def find_platform(session: Session, job_id: str, platform: str) -> Optional[ApplicationPlatform]:
    stmt = select(ApplicationPlatform).where(
        ApplicationPlatform.job_id == job_id,
        ApplicationPlatform.platform == platform,
    )
    return session.execute(stmt).scalar_one_or_none()


def get_platform_for_user(session: Session, user_id: str, platform_id: str) -> Optional[ApplicationPlatform]:
    stmt = (
        select(ApplicationPlatform)
        .join(Job, ApplicationPlatform.job_id == Job.id)
        .where(ApplicationPlatform.id == platform_id)
        .where(Job.user_id == user_id)
    )
    return session.execute(stmt).scalar_one_or_none()


def count_platforms(session: Session, job_id: str) -> int:
    stmt = select(func.count(ApplicationPlatform.id)).where(ApplicationPlatform.job_id == job_id)
    return session.execute(stmt).scalar_one()


def refresh_platform_count(session: Session, job: Job) -> int:
    """Recompute the cached platform_count from the actual rows."""
    session.flush()
    job.platform_count = count_platforms(session, job.id)
    session.flush()
    return job.platform_count


# --- duplicate pairs ---------------------------------------------------------

def get_pairs_between(session: Session, job_id: str, other_ids: Iterable[str]) -> Sequence[JobDuplicate]:
    """Suggestions linking `job_id` to any of `other_ids`, in either order."""
    ids = list(other_ids)
    if not ids:
        return []
    stmt = select(JobDuplicate).where(
        or_(
            and_(JobDuplicate.job_id_1 == job_id, JobDuplicate.job_id_2.in_(ids)),
            and_(JobDuplicate.job_id_2 == job_id, JobDuplicate.job_id_1.in_(ids)),
        )
    )
    return session.execute(stmt).scalars().all()


def add_duplicate_pairs(session: Session, rows: Iterable[dict]) -> list[JobDuplicate]:
    pairs = [
        JobDuplicate(status="pending", pair_key=JobDuplicate.key_for(row["job_id_1"], row["job_id_2"]), **row)
        for row in rows
    ]
    session.add_all(pairs)
    session.flush()
    return pairs


def get_duplicate_for_user(session: Session, user_id: str, duplicate_id: str) -> Optional[JobDuplicate]:
    """Ownership is decided by the owner of job_id_1."""
    stmt = (
        select(JobDuplicate)
        .join(Job, JobDuplicate.job_id_1 == Job.id)
        .where(JobDuplicate.id == duplicate_id)
        .where(Job.user_id == user_id)
    )
    return session.execute(stmt).scalar_one_or_none()


def list_pending_duplicates(session: Session, user_id: str) -> Sequence[JobDuplicate]:
    stmt = (
        select(JobDuplicate)
        .join(Job, JobDuplicate.job_id_1 == Job.id)
        .options(selectinload(JobDuplicate.job1), selectinload(JobDuplicate.job2))
        .where(JobDuplicate.status == "pending")
        .where(Job.user_id == user_id)
        .order_by(JobDuplicate.similarity_score.desc(), JobDuplicate.id.asc())
    )
    return session.execute(stmt).scalars().all()


def resolve_pairs_for_job(
    session: Session,
    job_id: str,
    status: str,
    *,
    resolved_at: Optional[datetime] = None,
) -> int:
    """Set `status` on every suggestion referencing `job_id` on either side."""
    result = session.execute(
        update(JobDuplicate)
        .where(or_(JobDuplicate.job_id_1 == job_id, JobDuplicate.job_id_2 == job_id))
        .values(status=status, resolved_at=resolved_at or utcnow())
    )
    return result.rowcount or 0

"""Fold duplicate jobs into a master job.

The whole merge runs inside one database transaction: either every duplicate
is folded in, or a store failure rolls everything back and MergeFailedError
tells the caller nothing changed and the request can be retried. Merges for
the same user are serialized with an in-process lock, and the master row is
locked FOR UPDATE on backends that support it.
"""
from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from typing import Iterator, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tracker.core.errors import MergeFailedError, NotFoundError, ValidationError
from tracker.db import crud
from tracker.db.models import Job, utcnow

LOGGER = logging.getLogger(__name__)

_LOCKS_GUARD = threading.Lock()
# user_id -> [lock, number of merges holding or waiting on it]
_USER_LOCKS: dict[str, list] = {}


@contextmanager
def user_merge_lock(user_id: str) -> Iterator[None]:
    """Serialize merges per user; the entry is dropped when the last waiter leaves."""
    with _LOCKS_GUARD:
        entry = _USER_LOCKS.setdefault(user_id, [threading.Lock(), 0])
        entry[1] += 1
    try:
        with entry[0]:
            yield
    finally:
        with _LOCKS_GUARD:
            entry[1] -= 1
            if entry[1] == 0:
                del _USER_LOCKS[user_id]


@dataclass
class MergeResult:
    master_job_id: str
    merged_job_ids: list[str] = field(default_factory=list)
    platforms_moved: int = 0
    platforms_dropped: int = 0
    suggestions_resolved: int = 0
    platform_count: int = 0
    message: str = "Jobs merged successfully"

    def to_dict(self) -> dict:
        return asdict(self)


def _validate_request(master_job_id: str, duplicate_job_ids: Sequence[str]) -> None:
    if not duplicate_job_ids:
        raise ValidationError("duplicate_job_ids", "at least one duplicate job is required")
    if master_job_id in duplicate_job_ids:
        raise ValidationError("duplicate_job_ids", "master job cannot be merged into itself")


def _load_jobs(
    session: Session,
    user_id: str,
    master_job_id: str,
    duplicate_job_ids: Sequence[str],
) -> tuple[Job, list[Job]]:
    master = crud.get_job_for_user(session, user_id, master_job_id, for_update=True)
    if master is None:
        raise NotFoundError("Master job", master_job_id)
    if master.is_duplicate:
        raise ValidationError("master_job_id", f"job {master_job_id} is itself merged into another job")

    loaded = {job.id: job for job in crud.get_jobs_for_user(session, user_id, duplicate_job_ids)}
    # Repeated ids also land here: the loaded count can never match.
    if len(loaded) != len(duplicate_job_ids):
        raise ValidationError("duplicate_job_ids", "one or more duplicate jobs not found")
    return master, [loaded[job_id] for job_id in duplicate_job_ids]


def _fold_duplicate(session: Session, master: Job, duplicate: Job, master_platforms: set[str], result: MergeResult) -> None:
    for platform in crud.list_platforms(session, duplicate.id):
        if platform.platform in master_platforms:
            LOGGER.debug("merge drop platform=%s from job=%s", platform.platform, duplicate.id)
            session.delete(platform)
            result.platforms_dropped += 1
        else:
            LOGGER.debug("merge move platform=%s job=%s -> %s", platform.platform, duplicate.id, master.id)
            platform.job = master
            master_platforms.add(platform.platform)
            result.platforms_moved += 1
    session.flush()

    crud.mark_job_duplicate(session, duplicate, master.id)
    crud.repoint_merged_jobs(session, duplicate.id, master.id)
    result.suggestions_resolved += crud.resolve_pairs_for_job(
        session, duplicate.id, "merged", resolved_at=utcnow()
    )
    result.merged_job_ids.append(duplicate.id)


def merge_duplicates(
    session: Session,
    user_id: str,
    master_job_id: str,
    duplicate_job_ids: Sequence[str],
) -> MergeResult:
    duplicate_job_ids = list(duplicate_job_ids)
    _validate_request(master_job_id, duplicate_job_ids)

    with user_merge_lock(user_id):
        try:
            master, duplicates = _load_jobs(session, user_id, master_job_id, duplicate_job_ids)
        except (NotFoundError, ValidationError):
            session.rollback()
            raise

        LOGGER.info("merge start user=%s master=%s duplicates=%s", user_id, master_job_id, duplicate_job_ids)
        result = MergeResult(master_job_id=master_job_id)
        try:
            master_platforms = {p.platform for p in crud.list_platforms(session, master.id)}
            for duplicate in duplicates:
                _fold_duplicate(session, master, duplicate, master_platforms, result)
            result.platform_count = crud.refresh_platform_count(session, master)
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            LOGGER.error("merge failed user=%s master=%s; rolled back", user_id, master_job_id, exc_info=True)
            raise MergeFailedError(master_job_id, exc) from exc

    LOGGER.info(
        "merge done master=%s merged=%s moved=%s dropped=%s platform_count=%s",
        master_job_id,
        len(result.merged_job_ids),
        result.platforms_moved,
        result.platforms_dropped,
        result.platform_count,
    )
    return result

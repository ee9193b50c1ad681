"""Duplicate job detection.

Scores a trigger job against the owner's other active jobs, stores new
above-threshold pairs as pending suggestions and exposes the pending backlog.

A suggestion covers an unordered pair: detection skips any candidate already
linked to the trigger in either direction and in any status, so a dismissed
or merged pair is never suggested again. The unique `pair_key` column holds
the same rule when two detections for one pair overlap.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tracker.core.errors import ConflictError, NotFoundError, ValidationError
from tracker.core.similarity import SimilarityScore, calculate_similarity
from tracker.db import crud
from tracker.db.models import Job, JobDuplicate, utcnow

LOGGER = logging.getLogger(__name__)

DUPLICATE_THRESHOLD = 0.70


@dataclass
class ScoredJob:
    job: Job
    score: SimilarityScore

    @property
    def job_id(self) -> str:
        return self.job.id


def score_candidates(trigger: Any, candidates: Iterable[Any]) -> list[tuple[Any, SimilarityScore]]:
    """Score, keep composite >= DUPLICATE_THRESHOLD, sort by score desc then id."""
    scored = [(c, calculate_similarity(trigger, c)) for c in candidates]
    kept = [(c, s) for c, s in scored if s.composite >= DUPLICATE_THRESHOLD]
    kept.sort(key=lambda pair: (-pair[1].composite, str(_job_id(pair[0]))))
    return kept


def _job_id(job: Any) -> Any:
    return job.get("id") if isinstance(job, dict) else job.id


def _store_pairs(session: Session, job_id: str, rows: list[dict]) -> int:
    """Insert new suggestions; a pair stored meanwhile by another detection is skipped."""
    if not rows:
        return 0
    try:
        crud.add_duplicate_pairs(session, rows)
        session.commit()
        return len(rows)
    except IntegrityError:
        session.rollback()
        LOGGER.info("duplicates job=%s lost insert race, retrying per pair", job_id)

    inserted = 0
    for row in rows:
        if crud.get_pairs_between(session, job_id, [row["job_id_2"]]):
            continue
        try:
            crud.add_duplicate_pairs(session, [row])
            session.commit()
        except IntegrityError:
            # stored by a concurrent detection after the check above
            session.rollback()
            continue
        inserted += 1
    return inserted


def find_potential_duplicates(session: Session, user_id: str, job_id: str) -> list[ScoredJob]:
    trigger = crud.get_job_for_user(session, user_id, job_id)
    if trigger is None:
        raise NotFoundError("Job", job_id)
    if trigger.is_duplicate:
        raise ValidationError("job_id", f"job {job_id} is merged into {trigger.merged_into_job_id}")

    candidates = crud.list_candidate_jobs(session, user_id, job_id)
    if not candidates:
        LOGGER.info("duplicates job=%s candidates=0", job_id)
        return []

    flagged = score_candidates(trigger, candidates)
    if not flagged:
        LOGGER.info("duplicates job=%s candidates=%s flagged=0", job_id, len(candidates))
        return []

    flagged_ids = [c.id for c, _ in flagged]
    covered: set[str] = set()
    for pair in crud.get_pairs_between(session, job_id, flagged_ids):
        covered.add(pair.job_id_2 if pair.job_id_1 == job_id else pair.job_id_1)

    new_rows = [
        {
            "job_id_1": job_id,
            "job_id_2": candidate.id,
            "similarity_score": score.composite,
            "company_match": score.company_match,
            "title_match": score.title_match,
            "location_match": score.location_match,
            "date_match": score.date_match,
        }
        for candidate, score in flagged
        if candidate.id not in covered
    ]
    inserted = _store_pairs(session, job_id, new_rows)

    LOGGER.info(
        "duplicates job=%s candidates=%s flagged=%s inserted=%s",
        job_id,
        len(candidates),
        len(flagged),
        inserted,
    )
    return [ScoredJob(job=candidate, score=score) for candidate, score in flagged]


def get_pending_duplicates(session: Session, user_id: str) -> Sequence[JobDuplicate]:
    return crud.list_pending_duplicates(session, user_id)


def dismiss_duplicate(session: Session, user_id: str, duplicate_id: str) -> JobDuplicate:
    """Mark a pending suggestion as dismissed.

    Raises ConflictError when the suggestion was already merged or dismissed,
    which surfaces double submissions to the caller.
    """
    duplicate = crud.get_duplicate_for_user(session, user_id, duplicate_id)
    if duplicate is None:
        raise NotFoundError("Duplicate record", duplicate_id)
    if duplicate.status != "pending":
        raise ConflictError(f"Duplicate record {duplicate_id} is already {duplicate.status}")

    duplicate.status = "dismissed"
    duplicate.resolved_at = utcnow()
    session.commit()
    LOGGER.info("duplicates dismissed id=%s user=%s", duplicate_id, user_id)
    return duplicate


def detect_all_for_user(session: Session, user_id: str) -> dict[str, list[ScoredJob]]:
    """Run detection for every active job of a user; returns matches per job id."""
    results: dict[str, list[ScoredJob]] = {}
    for job in crud.list_jobs(session, user_id):
        matches = find_potential_duplicates(session, user_id, job.id)
        if matches:
            results[job.id] = matches
    return results

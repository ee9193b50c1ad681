"""Attach, list, edit and remove application platforms on a job.

Each add/remove refreshes the job's cached platform_count.
"""
from __future__ import annotations

import logging
from typing import Sequence

from sqlalchemy.orm import Session

from tracker.core.date_parse import coerce_datetime
from tracker.core.errors import ConflictError, NotFoundError, ValidationError
from tracker.db import crud
from tracker.db.models import PLATFORMS, ApplicationPlatform, Job

LOGGER = logging.getLogger(__name__)

EDITABLE_FIELDS = ("platform", "application_url", "platform_job_id", "notes", "applied_at")


def _editable(data: dict) -> dict:
    fields = {k: v for k, v in data.items() if k in EDITABLE_FIELDS and v is not None}
    if "applied_at" in fields:
        applied_at = coerce_datetime(fields.pop("applied_at"))
        if applied_at is not None:
            fields["applied_at"] = applied_at
    return fields


def _require_job(session: Session, user_id: str, job_id: str) -> Job:
    job = crud.get_job_for_user(session, user_id, job_id)
    if job is None:
        raise NotFoundError("Job", job_id)
    return job


def _check_platform_name(name: str | None) -> str:
    if name not in PLATFORMS:
        raise ValidationError("platform", f"unknown platform {name!r}")
    return name


def add_platform_to_job(session: Session, user_id: str, job_id: str, data: dict) -> ApplicationPlatform:
    job = _require_job(session, user_id, job_id)
    name = _check_platform_name(data.get("platform"))

    if crud.find_platform(session, job.id, name) is not None:
        raise ConflictError("Platform already added to this job. Use update instead.")

    platform = ApplicationPlatform(job_id=job.id, **_editable(data))
    session.add(platform)
    crud.refresh_platform_count(session, job)
    session.commit()
    session.refresh(platform)
    LOGGER.info("platform added job=%s platform=%s", job.id, name)
    return platform


def get_job_platforms(session: Session, user_id: str, job_id: str) -> Sequence[ApplicationPlatform]:
    job = _require_job(session, user_id, job_id)
    return crud.list_platforms(session, job.id)


def get_jobs_with_platforms(session: Session, user_id: str) -> Sequence[Job]:
    return crud.list_jobs_with_platforms(session, user_id)


def update_platform(session: Session, user_id: str, platform_id: str, updates: dict) -> ApplicationPlatform:
    platform = crud.get_platform_for_user(session, user_id, platform_id)
    if platform is None:
        raise NotFoundError("Platform", platform_id)

    new_name = updates.get("platform")
    if new_name is not None and new_name != platform.platform:
        _check_platform_name(new_name)
        if crud.find_platform(session, platform.job_id, new_name) is not None:
            raise ConflictError(f"Job already has a {new_name} platform entry")

    for key, value in _editable(updates).items():
        setattr(platform, key, value)
    session.commit()
    session.refresh(platform)
    return platform


def remove_platform(session: Session, user_id: str, platform_id: str) -> None:
    platform = crud.get_platform_for_user(session, user_id, platform_id)
    if platform is None:
        raise NotFoundError("Platform", platform_id)

    job = platform.job
    name = platform.platform
    session.delete(platform)
    crud.refresh_platform_count(session, job)
    session.commit()
    LOGGER.info("platform removed job=%s platform=%s", job.id, name)

from __future__ import annotations

import logging
from datetime import datetime
from typing import Literal, Optional, List

from fastapi import FastAPI, Depends, Query, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from tracker import config
from tracker.api.deps import db_session, current_user
from tracker.core import duplicates as duplicate_service
from tracker.core import platforms as platform_service
from tracker.core.date_parse import coerce_datetime
from tracker.core.errors import (
    ConflictError,
    MergeFailedError,
    NotFoundError,
    TrackerError,
    ValidationError,
)
from tracker.core.merge import merge_duplicates
from tracker.db import crud
from tracker.db.models import JOB_STATUSES, Job, JobDuplicate
from tracker.db.session import test_connection

config.configure_logging()
LOGGER = logging.getLogger(__name__)

# -------------------------
# FastAPI setup
# -------------------------
app = FastAPI(title="Job Tracker API", version="0.3.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(TrackerError)
async def tracker_error_handler(request: Request, exc: TrackerError):
    """Map domain errors onto client- or server-side status codes."""
    if isinstance(exc, MergeFailedError):
        LOGGER.error("merge failed: %s", exc)
        return JSONResponse(status_code=503, content={"detail": str(exc), "retryable": True})

    LOGGER.warning("request rejected: %s", exc)
    if isinstance(exc, NotFoundError):
        status_code = 404
    elif isinstance(exc, ValidationError):
        status_code = 400
    elif isinstance(exc, ConflictError):
        status_code = 409
    else:
        status_code = 400
    return JSONResponse(status_code=status_code, content={"detail": str(exc), "retryable": False})


# -------------------------
# Pydantic request/response models
# -------------------------
class JobIn(BaseModel):
    company_name: str = Field(min_length=1)
    job_title: str = Field(min_length=1)
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    location: Optional[str] = None
    status: Literal[JOB_STATUSES] = "Interested"
    posting_url: Optional[str] = None
    description: Optional[str] = None
    applied_at: Optional[datetime] = None


class JobOut(BaseModel):
    id: str
    company_name: str
    job_title: str
    city: Optional[str]
    state: Optional[str]
    country: Optional[str]
    location: Optional[str]
    status: str
    posting_url: Optional[str]
    applied_at: Optional[datetime]
    is_duplicate: bool
    merged_into_job_id: Optional[str]
    platform_count: int

    class Config:
        from_attributes = True  # pydantic v2


class DuplicateCandidateOut(JobOut):
    similarity_score: float
    company_match: float
    title_match: float
    location_match: float
    date_match: float


class JobCreatedOut(BaseModel):
    job: JobOut
    duplicates: List[DuplicateCandidateOut] = []


class PendingDuplicateOut(BaseModel):
    id: str
    job_id_1: str
    job_id_2: str
    similarity_score: float
    company_match: float
    title_match: float
    location_match: float
    date_match: float
    status: str
    created_at: datetime
    job1: JobOut
    job2: JobOut

    class Config:
        from_attributes = True


class MergeIn(BaseModel):
    master_job_id: str
    duplicate_job_ids: List[str]


class MergeOut(BaseModel):
    message: str
    master_job_id: str
    merged_job_ids: List[str]
    platforms_moved: int
    platforms_dropped: int
    suggestions_resolved: int
    platform_count: int


class PlatformIn(BaseModel):
    platform: str
    application_url: Optional[str] = None
    platform_job_id: Optional[str] = None
    notes: Optional[str] = None
    applied_at: Optional[datetime] = None


class PlatformUpdate(BaseModel):
    platform: Optional[str] = None
    application_url: Optional[str] = None
    platform_job_id: Optional[str] = None
    notes: Optional[str] = None
    applied_at: Optional[datetime] = None


class PlatformOut(BaseModel):
    id: str
    job_id: str
    platform: str
    application_url: Optional[str]
    platform_job_id: Optional[str]
    applied_at: datetime
    notes: Optional[str]

    class Config:
        from_attributes = True


class JobWithPlatformsOut(JobOut):
    platforms: List[PlatformOut] = []


def _candidate_out(match: duplicate_service.ScoredJob) -> DuplicateCandidateOut:
    base = JobOut.model_validate(match.job).model_dump()
    return DuplicateCandidateOut(
        **base,
        similarity_score=match.score.composite,
        company_match=match.score.company_match,
        title_match=match.score.title_match,
        location_match=match.score.location_match,
        date_match=match.score.date_match,
    )


# -------------------------
# Routes
# -------------------------
@app.get("/", tags=["meta"])
async def root():
    return {"message": "Job Tracker API is running"}


@app.get("/healthz", tags=["meta"])
def healthz():
    database = test_connection()
    return {"status": "ok" if database else "degraded", "database": database}


@app.post("/jobs", response_model=JobCreatedOut, status_code=201, tags=["jobs"])
def create_job(
    payload: JobIn,
    detect: bool = Query(True, description="Run duplicate detection for the new job"),
    user_id: str = Depends(current_user),
    session: Session = Depends(db_session),
):
    data = payload.model_dump() | {"user_id": user_id}
    data["applied_at"] = coerce_datetime(data["applied_at"])
    job = crud.create_job(session, data)
    matches = duplicate_service.find_potential_duplicates(session, user_id, job.id) if detect else []
    return JobCreatedOut(
        job=JobOut.model_validate(job),
        duplicates=[_candidate_out(m) for m in matches],
    )


@app.get("/jobs", response_model=List[JobOut], tags=["jobs"])
def list_jobs(
    include_duplicates: bool = Query(False, description="Include jobs merged into another job"),
    user_id: str = Depends(current_user),
    session: Session = Depends(db_session),
):
    rows = crud.list_jobs(session, user_id, include_duplicates=include_duplicates)
    return [JobOut.model_validate(j) for j in rows]


@app.get("/jobs/{job_id}", response_model=JobOut, tags=["jobs"])
def get_job(job_id: str, user_id: str = Depends(current_user), session: Session = Depends(db_session)):
    job: Job | None = crud.get_job_for_user(session, user_id, job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return JobOut.model_validate(job)


@app.post("/duplicates/detect/{job_id}", response_model=List[DuplicateCandidateOut], tags=["duplicates"])
def detect_duplicates(job_id: str, user_id: str = Depends(current_user), session: Session = Depends(db_session)):
    matches = duplicate_service.find_potential_duplicates(session, user_id, job_id)
    return [_candidate_out(m) for m in matches]


@app.get("/duplicates/pending", response_model=List[PendingDuplicateOut], tags=["duplicates"])
def pending_duplicates(user_id: str = Depends(current_user), session: Session = Depends(db_session)):
    rows: list[JobDuplicate] = list(duplicate_service.get_pending_duplicates(session, user_id))
    return [PendingDuplicateOut.model_validate(r) for r in rows]


@app.post("/duplicates/merge", response_model=MergeOut, tags=["duplicates"])
def merge(payload: MergeIn, user_id: str = Depends(current_user), session: Session = Depends(db_session)):
    result = merge_duplicates(session, user_id, payload.master_job_id, payload.duplicate_job_ids)
    return MergeOut(**result.to_dict())


@app.post("/duplicates/dismiss/{duplicate_id}", tags=["duplicates"])
def dismiss(duplicate_id: str, user_id: str = Depends(current_user), session: Session = Depends(db_session)):
    duplicate_service.dismiss_duplicate(session, user_id, duplicate_id)
    return {"message": "Duplicate dismissed"}


@app.post("/platforms/job/{job_id}", response_model=PlatformOut, status_code=201, tags=["platforms"])
def add_platform(
    job_id: str,
    payload: PlatformIn,
    user_id: str = Depends(current_user),
    session: Session = Depends(db_session),
):
    platform = platform_service.add_platform_to_job(session, user_id, job_id, payload.model_dump())
    return PlatformOut.model_validate(platform)


@app.get("/platforms/job/{job_id}", response_model=List[PlatformOut], tags=["platforms"])
def job_platforms(job_id: str, user_id: str = Depends(current_user), session: Session = Depends(db_session)):
    rows = platform_service.get_job_platforms(session, user_id, job_id)
    return [PlatformOut.model_validate(p) for p in rows]


@app.get("/platforms/jobs/all", response_model=List[JobWithPlatformsOut], tags=["platforms"])
def jobs_with_platforms(user_id: str = Depends(current_user), session: Session = Depends(db_session)):
    rows = platform_service.get_jobs_with_platforms(session, user_id)
    return [JobWithPlatformsOut.model_validate(j) for j in rows]


@app.patch("/platforms/{platform_id}", response_model=PlatformOut, tags=["platforms"])
def edit_platform(
    platform_id: str,
    payload: PlatformUpdate,
    user_id: str = Depends(current_user),
    session: Session = Depends(db_session),
):
    platform = platform_service.update_platform(
        session, user_id, platform_id, payload.model_dump(exclude_unset=True)
    )
    return PlatformOut.model_validate(platform)


@app.delete("/platforms/{platform_id}", tags=["platforms"])
def delete_platform(platform_id: str, user_id: str = Depends(current_user), session: Session = Depends(db_session)):
    platform_service.remove_platform(session, user_id, platform_id)
    return {"message": "Platform removed successfully"}

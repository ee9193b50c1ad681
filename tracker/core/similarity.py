"""Pairwise similarity scoring for job records.

Everything here is pure: no database access, no notion of users. Jobs may be
ORM rows, simple objects or dicts exposing company_name, job_title, city,
state, country, location and applied_at.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, asdict
from typing import Any

from .date_parse import coerce_datetime

# Bump SCORER_VERSION whenever WEIGHTS change; stored scores become stale.
SCORER_VERSION = 1
WEIGHTS = {
    "company": 0.40,
    "title": 0.35,
    "location": 0.15,
    "date": 0.10,
}
DATE_WINDOW_DAYS = 30
EMPTY_LOCATION_SCORE = 0.5

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class SimilarityScore:
    composite: float
    company_match: float
    title_match: float
    location_match: float
    date_match: float

    def to_dict(self) -> dict:
        return asdict(self)


def _field(job: Any, name: str) -> Any:
    if isinstance(job, dict):
        return job.get(name)
    return getattr(job, name, None)


def normalize(text: str | None) -> str:
    text = (text or "").lower()
    text = _NON_ALNUM.sub("", text)
    return _WHITESPACE.sub(" ", text).strip()


def bigrams(text: str) -> list[str]:
    return [text[i:i + 2] for i in range(len(text) - 1)]


def string_similarity(a: str, b: str) -> float:
    """Dice coefficient over character bigrams.

    Bigram lists keep repeats, and each bigram of `a` counts once per
    occurrence if it appears anywhere in `b`.
    """
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0

    grams_a = bigrams(a)
    grams_b = bigrams(b)
    lookup = set(grams_b)
    intersection = sum(1 for g in grams_a if g in lookup)
    union = len(grams_a) + len(grams_b)
    if union == 0:
        return 0.0
    # Repeated bigrams in `a` can push the raw ratio past 1.0
    return min(1.0, (2 * intersection) / union)


def _location_text(job: Any) -> str:
    parts = [_field(job, "city") or "", _field(job, "state") or "", _field(job, "country") or ""]
    combined = normalize(" ".join(parts))
    if not combined:
        combined = normalize(_field(job, "location"))
    return combined


def location_similarity(job1: Any, job2: Any) -> float:
    loc1 = _location_text(job1)
    loc2 = _location_text(job2)
    if not loc1 and not loc2:
        return EMPTY_LOCATION_SCORE
    return string_similarity(loc1, loc2)


def date_similarity(date1: Any, date2: Any) -> float:
    """Linear decay from 1.0 at the same instant to 0.0 at DATE_WINDOW_DAYS apart."""
    d1 = coerce_datetime(date1)
    d2 = coerce_datetime(date2)
    if d1 is None or d2 is None:
        return 0.0
    diff_days = abs((d1 - d2).total_seconds()) / 86400
    return max(0.0, 1 - diff_days / DATE_WINDOW_DAYS)


def calculate_similarity(job_a: Any, job_b: Any) -> SimilarityScore:
    company_match = string_similarity(
        normalize(_field(job_a, "company_name")),
        normalize(_field(job_b, "company_name")),
    )
    title_match = string_similarity(
        normalize(_field(job_a, "job_title")),
        normalize(_field(job_b, "job_title")),
    )
    location_match = location_similarity(job_a, job_b)
    date_match = date_similarity(_field(job_a, "applied_at"), _field(job_b, "applied_at"))

    composite = (
        WEIGHTS["company"] * company_match
        + WEIGHTS["title"] * title_match
        + WEIGHTS["location"] * location_match
        + WEIGHTS["date"] * date_match
    )
    return SimilarityScore(
        composite=composite,
        company_match=company_match,
        title_match=title_match,
        location_match=location_match,
        date_match=date_match,
    )

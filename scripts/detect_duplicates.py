"""Run duplicate detection across every active job of a user.

Useful after a bulk import, when jobs were created without triggering
detection. With --dry-run nothing is written; matches are only scored.
Designed to be run by hand or from a cronjob.
"""

from __future__ import annotations

import argparse
import logging
import os
from dataclasses import asdict, dataclass
from typing import Optional

from tracker.config import configure_logging, parse_bool
from tracker.core.duplicates import detect_all_for_user, score_candidates
from tracker.db import crud
from tracker.db.session import get_session

DEFAULT_SAMPLE_SIZE = 10

LOGGER = logging.getLogger(__name__)


@dataclass
class DetectionSummary:
    user_id: str
    jobs_analyzed: int
    jobs_with_matches: int
    matches: int
    dry_run: bool
    sample: list[dict]

    def to_dict(self) -> dict:
        return asdict(self)


def _dry_run_matches(session, user_id: str) -> dict[str, list]:
    results: dict[str, list] = {}
    for job in crud.list_jobs(session, user_id):
        candidates = crud.list_candidate_jobs(session, user_id, job.id)
        flagged = score_candidates(job, candidates)
        if flagged:
            results[job.id] = flagged
    return results


def detect_duplicates(
    user_id: str,
    *,
    dry_run: bool = False,
    sample_size: int = DEFAULT_SAMPLE_SIZE,
) -> DetectionSummary:
    if not user_id:
        raise ValueError("A user id is required")

    with get_session() as session:
        jobs_analyzed = len(crud.list_jobs(session, user_id))

        sample: list[dict] = []
        matches = 0
        if dry_run:
            found = _dry_run_matches(session, user_id)
            for job_id, flagged in found.items():
                matches += len(flagged)
                for candidate, score in flagged:
                    if len(sample) < sample_size:
                        sample.append({"job_id": job_id, "candidate_id": candidate.id, "score": round(score.composite, 3)})
        else:
            found = detect_all_for_user(session, user_id)
            for job_id, scored in found.items():
                matches += len(scored)
                for match in scored:
                    if len(sample) < sample_size:
                        sample.append({"job_id": job_id, "candidate_id": match.job_id, "score": round(match.score.composite, 3)})

    return DetectionSummary(
        user_id=user_id,
        jobs_analyzed=jobs_analyzed,
        jobs_with_matches=len(found),
        matches=matches,
        dry_run=dry_run,
        sample=sample,
    )


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Detect duplicate jobs for a user")
    parser.add_argument(
        "--user-id",
        type=str,
        default=os.getenv("TRACKER_USER_ID"),
        help="Owner whose jobs are scanned (default: env TRACKER_USER_ID)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        default=parse_bool(os.getenv("TRACKER_DETECT_DRY_RUN")),
        help="Score candidate pairs without storing suggestions",
    )
    parser.add_argument(
        "--sample-size",
        type=int,
        default=int(os.getenv("TRACKER_DETECT_SAMPLE", DEFAULT_SAMPLE_SIZE)),
        help="How many matches to include in the summary output",
    )

    args = parser.parse_args(argv)
    configure_logging()

    summary = detect_duplicates(args.user_id, dry_run=args.dry_run, sample_size=args.sample_size)
    LOGGER.info("detection finished user=%s matches=%s", summary.user_id, summary.matches)
    print(summary.to_dict())


if __name__ == "__main__":
    main()

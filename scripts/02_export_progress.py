#!/usr/bin/env python3
"""
02_export_progress.py - Export learner progress summaries to CSV.

One row per (learner, course): lessons completed, completion percent,
last activity and certificate number. Learners are every learner with
recorded activity in progress.db unless --learners is given.

Usage:
  python scripts/02_export_progress.py
  python scripts/02_export_progress.py --course intro-python --output data/progress.csv
  python scripts/02_export_progress.py --learners alice bob --config coursegate.yaml
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

import pandas as pd

from coursegate.classroom import CourseService
from coursegate.config import load_settings, setup_logging

logger = logging.getLogger(__name__)

COLUMNS = [
    "learner_id",
    "course_id",
    "completed_lessons",
    "total_lessons",
    "completion_percent",
    "total_duration_minutes",
    "last_activity_at",
    "recommended_lesson_id",
    "certificate_number",
]


def build_progress_frame(
    service: CourseService,
    learner_ids: list[str],
    course_ids: list[str],
) -> pd.DataFrame:
    """Progress summaries for every learner and course as a DataFrame."""
    rows = []
    for learner_id in learner_ids:
        for course_id in course_ids:
            summary = service.get_progress_summary(learner_id, course_id)
            rows.append(summary.model_dump(include=set(COLUMNS)))

    df = pd.DataFrame(rows, columns=COLUMNS)
    if not df.empty:
        df = df.sort_values(["course_id", "learner_id"]).reset_index(drop=True)
    return df


def main(argv: Optional[list[str]] = None):
    parser = argparse.ArgumentParser(
        description="Export learner progress summaries to CSV",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Settings YAML (default: ./coursegate.yaml if present)"
    )
    parser.add_argument(
        "--course",
        type=str,
        default=None,
        help="Export a single course (default: every compiled course)"
    )
    parser.add_argument(
        "--learners",
        nargs="+",
        default=None,
        help="Learner IDs to export (default: every learner with activity)"
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=PROJECT_ROOT / "data" / "progress.csv",
        help="Output CSV path (default: data/progress.csv)"
    )

    args = parser.parse_args(argv)

    settings = load_settings(args.config, env_file=PROJECT_ROOT / ".env")
    setup_logging(settings.log_level)

    service = CourseService.from_settings(settings)
    course_ids = [args.course] if args.course else service.loader.get_course_ids()
    learner_ids = args.learners or service.ledger.get_learner_ids()

    logger.info(f"Exporting {len(learner_ids)} learners across {len(course_ids)} courses...")
    df = build_progress_frame(service, learner_ids, course_ids)

    args.output.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(args.output, index=False)
    logger.info(f"Saved {len(df)} rows to: {args.output}")

    if not df.empty:
        certified = df["certificate_number"].notna().sum()
        logger.info(f"Average completion: {df['completion_percent'].mean():.1f}%")
        logger.info(f"Certificates issued: {certified}")


if __name__ == "__main__":
    main()

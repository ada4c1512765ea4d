#!/usr/bin/env python3
"""
01_compile_courses.py - Compile course definitions into content.db.

Reads every .json/.yaml/.yml course file in a directory (or the files
given explicitly), validates each one and writes it into the content
database used by the course player. Recompiling a course replaces its
previous version; learner progress lives in a separate database and is
not touched.

Usage:
  python scripts/01_compile_courses.py
  python scripts/01_compile_courses.py --courses data/courses --output data/content.db
  python scripts/01_compile_courses.py --files data/courses/intro.yaml
"""

import argparse
import logging
import sqlite3
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

import yaml
from dotenv import load_dotenv

load_dotenv(PROJECT_ROOT / ".env")

from coursegate.classroom import load_course_file, write_course
from coursegate.classroom.quiz import validate_quiz
from coursegate.errors import ConfigurationError
from coursegate.schemas import Course

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

COURSE_SUFFIXES = (".json", ".yaml", ".yml")


# -----------------------------------------------------------------------------
# Loading
# -----------------------------------------------------------------------------

def find_course_files(courses_dir: Path) -> list[Path]:
    """All course definition files in a directory, sorted by name."""
    if not courses_dir.exists():
        raise FileNotFoundError(f"Courses directory not found: {courses_dir}")
    return sorted(p for p in courses_dir.iterdir() if p.suffix.lower() in COURSE_SUFFIXES)


# -----------------------------------------------------------------------------
# Integrity Checks
# -----------------------------------------------------------------------------

def run_integrity_checks(course: Course) -> list[str]:
    """Problems that would make the course unplayable or its quizzes unscorable."""
    issues = []

    if not course.flattened_lessons():
        issues.append(f"Course {course.id} has no lessons")

    for section in course.sections:
        if not section.lessons:
            issues.append(f"Section {section.id} has no lessons")

    for lesson in course.flattened_lessons():
        if lesson.quiz is None:
            continue
        try:
            validate_quiz(lesson.quiz)
        except ConfigurationError as e:
            issues.append(f"Lesson {lesson.id}: {e}")
        for question in lesson.quiz.questions:
            if not question.options:
                issues.append(f"Question {question.id} has no options")

    return issues


# -----------------------------------------------------------------------------
# Main
# -----------------------------------------------------------------------------

def main():
    parser = argparse.ArgumentParser(
        description="Compile course files into the content database",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument(
        "--courses",
        type=Path,
        default=PROJECT_ROOT / "data" / "courses",
        help="Directory of course files (default: data/courses)"
    )
    parser.add_argument(
        "--files",
        type=Path,
        nargs="+",
        default=None,
        help="Compile only these course files"
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=PROJECT_ROOT / "data" / "content.db",
        help="Output database path (default: data/content.db)"
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Skip courses that fail integrity checks instead of compiling them with warnings"
    )

    args = parser.parse_args()

    paths = args.files or find_course_files(args.courses)
    if not paths:
        logger.error(f"No course files found in {args.courses}")
        sys.exit(1)

    compiled, failed = [], []
    for path in paths:
        logger.info(f"Loading {path.name}...")
        try:
            course = load_course_file(path)
        except (ValueError, yaml.YAMLError) as e:
            logger.error(f"  Invalid course file {path.name}: {e}")
            failed.append(path.name)
            continue

        issues = run_integrity_checks(course)
        if issues:
            logger.warning(f"  Found {len(issues)} integrity issues in {course.id}:")
            for issue in issues[:10]:
                logger.warning(f"  - {issue}")
            if len(issues) > 10:
                logger.warning(f"  ... and {len(issues) - 10} more")
            if args.strict:
                failed.append(path.name)
                continue

        try:
            write_course(course, args.output)
        except sqlite3.Error as e:
            logger.error(f"  Could not write course {course.id}: {e}")
            failed.append(path.name)
            continue
        compiled.append(course)

    # Summary
    logger.info("\n" + "=" * 50)
    logger.info("COMPILATION COMPLETE")
    logger.info("=" * 50)
    logger.info(f"Database: {args.output}")
    logger.info(f"Courses: {len(compiled)}")
    logger.info(f"Lessons: {sum(len(c.flattened_lessons()) for c in compiled)}")
    logger.info(f"Quizzes: {sum(1 for c in compiled for l in c.flattened_lessons() if l.quiz)}")
    if failed:
        logger.warning(f"Failed: {', '.join(failed)}")
        sys.exit(1)


if __name__ == "__main__":
    main()

"""
Certificate issuance - Course completion check and one-time credential.

A certificate is issued at most once per (learner, course). Issuing
again returns the existing certificate; issuing for an unfinished
course is a GuardViolation.
"""

import logging
import secrets
import string
import time
from typing import Optional

from coursegate.classroom.resolver import first_incomplete_lesson, is_course_complete
from coursegate.errors import GuardViolation
from coursegate.schemas import Certificate, Course

logger = logging.getLogger(__name__)

BASE36_ALPHABET = string.digits + string.ascii_uppercase
RANDOM_SUFFIX_LENGTH = 7


def generate_certificate_number(prefix: str = "CERT") -> str:
    """
    Build a certificate number like CERT-1718000000000-K3Z9QX1.

    Millisecond timestamp plus a random base36 suffix: unique with
    overwhelming probability, not guaranteed. The ledger retries on
    collision.
    """
    millis = int(time.time() * 1000)
    suffix = "".join(secrets.choice(BASE36_ALPHABET) for _ in range(RANDOM_SUFFIX_LENGTH))
    return f"{prefix}-{millis}-{suffix}"


class CertificateIssuer:
    """Issue completion certificates through a ProgressLedger."""

    def __init__(self, ledger, prefix: str = "CERT", retries: int = 3):
        """
        Args:
            ledger: ProgressLedger holding progress, attempts and certificates
            prefix: Certificate number prefix
            retries: Fresh numbers to try when a generated number collides
        """
        self.ledger = ledger
        self.prefix = prefix
        self.retries = retries

    def get_existing(self, learner_id: str, course_id: str) -> Optional[Certificate]:
        return self.ledger.get_certificate(learner_id, course_id)

    def issue(self, learner_id: str, course: Course) -> Certificate:
        """
        Issue the course certificate, or return the one already issued.

        Safe to call repeatedly and concurrently: the ledger's unique
        (learner, course) key decides the single winner.

        Raises:
            GuardViolation: If the course is not complete for the learner
            PersistenceFailure: If the ledger could not confirm the write
        """
        existing = self.ledger.get_certificate(learner_id, course.id)
        if existing:
            logger.info(f"Certificate {existing.certificate_number} already issued to {learner_id} for {course.id}")
            return existing

        snapshot = self.ledger.get_snapshot(learner_id, course)
        if not is_course_complete(course, snapshot):
            pending = first_incomplete_lesson(course, snapshot)
            pending_id = pending.id if pending else None
            logger.warning(f"Refused certificate for {learner_id} in {course.id}: lesson {pending_id} not complete")
            raise GuardViolation(
                f"Course {course.id} is not complete (lesson {pending_id} pending)",
                lesson_id=pending_id,
            )

        certificate, created = self.ledger.create_certificate_if_absent(
            learner_id,
            course.id,
            lambda: generate_certificate_number(self.prefix),
            retries=self.retries,
        )
        if created:
            logger.info(f"Issued certificate {certificate.certificate_number} to {learner_id} for {course.id}")
        else:
            logger.info(f"Concurrent issuance for {learner_id} in {course.id} resolved to {certificate.certificate_number}")
        return certificate

"""
Consumption signals - Has the learner consumed enough of a lesson to complete it?

The answer comes from the playback side and is opaque to gating beyond
the boolean. Strategies:
- TextContentSignal: text-only lessons, always consumed
- ReportedProgressSignal: the player reports a watch percentage
- ElapsedTimeSignal: providers that cannot report progress; time on page
- TrustedProviderSignal: consumed as soon as the lesson is shown
"""

import time
from typing import Callable, Optional, Protocol

from coursegate.config import Settings
from coursegate.schemas import Lesson, MediaProvider


class ConsumptionSignal(Protocol):
    def has_consumed(self, lesson: Lesson) -> bool:
        ...


class TextContentSignal:
    def has_consumed(self, lesson: Lesson) -> bool:
        return True


class TrustedProviderSignal:
    def has_consumed(self, lesson: Lesson) -> bool:
        return True


class ReportedProgressSignal:
    """Consumed once the player-reported watch percentage reaches the threshold."""

    def __init__(self, threshold_percent: float = 90.0):
        self.threshold_percent = threshold_percent
        self._watched: dict[str, float] = {}

    def report(self, lesson_id: str, percent: float):
        """Record playback progress; progress never moves backwards."""
        percent = max(0.0, min(percent, 100.0))
        self._watched[lesson_id] = max(self._watched.get(lesson_id, 0.0), percent)

    def report_ended(self, lesson_id: str):
        self._watched[lesson_id] = 100.0

    def watched_percent(self, lesson_id: str) -> float:
        return self._watched.get(lesson_id, 0.0)

    def has_consumed(self, lesson: Lesson) -> bool:
        return self.watched_percent(lesson.id) >= self.threshold_percent


class ElapsedTimeSignal:
    """
    Consumed once enough time has passed since the lesson was opened.

    The estimate is ratio x the lesson's duration hint, or x the default
    duration when the lesson has none.
    """

    def __init__(
        self,
        ratio: float = 0.8,
        default_minutes: int = 3,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ratio = ratio
        self.default_minutes = default_minutes
        self.clock = clock
        self._started: dict[str, float] = {}

    def start(self, lesson_id: str):
        """Start the timer for a lesson; restarting an open lesson keeps the first start."""
        self._started.setdefault(lesson_id, self.clock())

    def required_seconds(self, lesson: Lesson) -> float:
        minutes = lesson.duration_minutes or self.default_minutes
        return minutes * 60 * self.ratio

    def elapsed_seconds(self, lesson_id: str) -> float:
        started = self._started.get(lesson_id)
        if started is None:
            return 0.0
        return self.clock() - started

    def watch_percent(self, lesson: Lesson) -> float:
        total = (lesson.duration_minutes or self.default_minutes) * 60
        return min(self.elapsed_seconds(lesson.id) / total * 100, 100.0)

    def has_consumed(self, lesson: Lesson) -> bool:
        if lesson.id not in self._started:
            return False
        return self.elapsed_seconds(lesson.id) >= self.required_seconds(lesson)


def signal_for_lesson(
    lesson: Lesson,
    settings: Optional[Settings] = None,
    clock: Callable[[], float] = time.monotonic,
) -> ConsumptionSignal:
    """
    Pick the default signal strategy for a lesson's media.

    No media -> text; upload -> reported progress; mux -> elapsed time
    (its stream cannot report real progress); youtube/embed -> trusted.
    """
    settings = settings or Settings()
    if lesson.media is None:
        return TextContentSignal()
    if lesson.media.provider == MediaProvider.UPLOAD:
        return ReportedProgressSignal(settings.watch_complete_percent)
    if lesson.media.provider == MediaProvider.MUX:
        return ElapsedTimeSignal(
            ratio=settings.timer_complete_ratio,
            default_minutes=settings.default_media_minutes,
            clock=clock,
        )
    return TrustedProviderSignal()

import enum
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Tuple, Union

from learnplan.config import settings
from learnplan.errors import ValidationError
from learnplan.models.enums import ReviewStatus


class ReviewOutcome(str, enum.Enum):
    """Named grades offered to children instead of the raw 0-5 scale"""
    AGAIN = "again"
    HARD = "hard"
    GOOD = "good"
    EASY = "easy"


OUTCOME_QUALITY = {
    ReviewOutcome.AGAIN: 1,
    ReviewOutcome.HARD: 3,
    ReviewOutcome.GOOD: 4,
    ReviewOutcome.EASY: 5,
}


def parse_quality(outcome: Union[int, str, ReviewOutcome]) -> int:
    """
    Turn a grade into an SM-2 quality (0-5).

    Accepts a ReviewOutcome, its name ("again", "hard", "good", "easy") or an
    integer 0-5 (also as a digit string). Anything else is a ValidationError.
    """
    if isinstance(outcome, ReviewOutcome):
        return OUTCOME_QUALITY[outcome]
    if isinstance(outcome, bool):
        raise ValidationError(f"Unknown review outcome: {outcome!r}")
    if isinstance(outcome, str):
        text = outcome.strip().lower()
        if text.isdigit():
            outcome = int(text)
        else:
            try:
                return OUTCOME_QUALITY[ReviewOutcome(text)]
            except ValueError:
                raise ValidationError(f"Unknown review outcome: {outcome!r}") from None
    if isinstance(outcome, int) and 0 <= outcome <= 5:
        return outcome
    raise ValidationError(f"Unknown review outcome: {outcome!r}")


@dataclass
class SM2Config:
    """Tunable SM-2 parameters; defaults come from settings"""
    initial_ease: float = settings.sm2_initial_ease
    min_ease: float = settings.sm2_min_ease
    max_ease: float = settings.sm2_max_ease
    first_interval: int = settings.sm2_first_interval
    second_interval: int = settings.sm2_second_interval
    max_interval_days: int = settings.sm2_max_interval_days
    passing_quality: int = settings.sm2_passing_quality
    reviewing_min_repetitions: int = settings.sm2_reviewing_min_repetitions
    mastered_min_repetitions: int = settings.sm2_mastered_min_repetitions
    mastered_min_interval_days: int = settings.sm2_mastered_min_interval_days


class SM2Algorithm:
    """
    SM-2 spaced repetition algorithm for calculating review intervals.
    Based on SuperMemo 2 algorithm by Piotr Wozniak.
    """

    def __init__(self, config: SM2Config = None):
        self.config = config or SM2Config()

    def calculate_next_review(
        self,
        easiness_factor: float,
        interval: int,
        repetitions: int,
        quality: int,
        reference_date: date
    ) -> Tuple[float, int, int, date]:
        """
        Calculate next review date and update SM-2 parameters.

        Args:
            easiness_factor: Current EF (difficulty)
            interval: Current interval in days
            repetitions: Number of consecutive successful reviews
            quality: Response quality (0-5). 0=total blackout, 5=perfect
            reference_date: Day the review happened

        Returns:
            (new_ef, new_interval, new_repetitions, next_review_date)
        """
        cfg = self.config

        # Update easiness factor based on quality
        new_ef = easiness_factor + (0.1 - (5 - quality) * (0.08 + (5 - quality) * 0.02))

        # Ensure EF stays within bounds
        new_ef = min(max(new_ef, cfg.min_ease), cfg.max_ease)

        # Failed recall starts the card over
        if quality < cfg.passing_quality:
            new_repetitions = 0
            new_interval = cfg.first_interval
        else:
            new_repetitions = repetitions + 1

            # Calculate new interval based on repetition count
            if new_repetitions == 1:
                new_interval = cfg.first_interval
            elif new_repetitions == 2:
                new_interval = cfg.second_interval
            else:
                new_interval = round(interval * new_ef)

        new_interval = max(1, min(new_interval, cfg.max_interval_days))
        next_review_date = reference_date + timedelta(days=new_interval)

        return new_ef, new_interval, new_repetitions, next_review_date

    def next_status(self, quality: int, repetitions: int, interval: int) -> ReviewStatus:
        """Status after a grade; a failing grade always drops back to learning"""
        cfg = self.config
        if quality < cfg.passing_quality:
            return ReviewStatus.LEARNING
        if repetitions >= cfg.mastered_min_repetitions and interval >= cfg.mastered_min_interval_days:
            return ReviewStatus.MASTERED
        if repetitions >= cfg.reviewing_min_repetitions:
            return ReviewStatus.REVIEWING
        return ReviewStatus.LEARNING

    def initialize(self, reference_date: date) -> Tuple[float, int, int, date]:
        """
        Initialize SM-2 parameters for a first exposure.

        Returns:
            (initial_ef, initial_interval, initial_reps, next_review_date)
        """
        cfg = self.config
        return cfg.initial_ease, cfg.first_interval, 0, reference_date + timedelta(days=cfg.first_interval)

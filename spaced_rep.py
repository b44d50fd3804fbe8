"""
Spaced repetition scheduling and review prioritization.

Early repetitions follow a fixed table of gaps (days):
1st review -> 1, 2nd -> 2, 3rd -> 4, 4th -> 7, 5th -> 15, 6th -> 30.
After that the SM-2 ease factor drives interval growth.

Quality ratings:
0 - Complete blackout
1 - Incorrect, but remembered after seeing the answer
2 - Incorrect, but the answer felt close
3 - Correct with serious difficulty
4 - Correct after hesitation
5 - Perfect response

All functions take an optional ``now``; the system clock is read only
when it is omitted.
"""

import math
from datetime import datetime, timedelta
from typing import Optional

from models import ReviewState, ReviewSuggestion, as_aware, utcnow

DEFAULT_INTERVALS = [1, 2, 4, 7, 15, 30]

INITIAL_EASE_FACTOR = 2.5
MIN_EASE_FACTOR = 1.3
PASSING_QUALITY = 3

NEW_CARD_PRIORITY = 100.0

ONE_DAY = timedelta(days=1)


def _resolve_now(now: Optional[datetime]) -> datetime:
    if now is None:
        # Local timezone, so "today" means the user's calendar day
        return utcnow().astimezone()
    return as_aware(now)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def initialize(now: Optional[datetime] = None) -> ReviewState:
    """Fresh state for a newly generated card, due one day from now."""
    now = _resolve_now(now)
    return ReviewState(
        last_reviewed_at=None,
        next_review_at=now + ONE_DAY,
        review_count=0,
        ease_factor=INITIAL_EASE_FACTOR,
        interval=1,
    )


def advance(state: ReviewState, quality: float, now: Optional[datetime] = None) -> ReviewState:
    """
    Apply one review to ``state`` and return the next state.

    Args:
        state: Current review state (left untouched)
        quality: Response quality, clamped into 0-5
        now: Review time

    Returns:
        New state with updated interval, ease factor and due date
    """
    now = _resolve_now(now)
    quality = max(0, min(5, quality))

    review_count = state.review_count + 1

    if quality < PASSING_QUALITY:
        # Failed - restart the fixed-gap sequence
        interval = 1
        review_count = 0
    elif review_count <= len(DEFAULT_INTERVALS):
        interval = DEFAULT_INTERVALS[review_count - 1]
    else:
        interval = _round_half_up(state.interval * state.ease_factor)
    interval = max(1, interval)

    # EF' = EF + (0.1 - (5 - q) * (0.08 + (5 - q) * 0.02))
    ease_factor = max(
        MIN_EASE_FACTOR,
        state.ease_factor + (0.1 - (5 - quality) * (0.08 + (5 - quality) * 0.02))
    )

    return state.model_copy(update={
        "last_reviewed_at": now,
        "next_review_at": now + timedelta(days=interval),
        "review_count": review_count,
        "ease_factor": ease_factor,
        "interval": interval,
    })


def _next_review(card) -> Optional[datetime]:
    state = getattr(card, "review_state", None)
    if state is None:
        return None
    return as_aware(state.next_review_at)


def get_due_cards(cards, now: Optional[datetime] = None) -> list:
    """Cards never reviewed or due at or before ``now``, in input order."""
    now = _resolve_now(now)
    due = []
    for card in cards:
        next_review = _next_review(card)
        if next_review is None or next_review <= now:
            due.append(card)
    return due


def calculate_priority(state: Optional[ReviewState], now: Optional[datetime] = None) -> float:
    """Urgency score, higher is more urgent. New cards always score 100."""
    if state is None or state.next_review_at is None:
        return NEW_CARD_PRIORITY

    now = _resolve_now(now)
    overdue_days = (now - as_aware(state.next_review_at)) / ONE_DAY

    if overdue_days > 0:
        return 50 + overdue_days * 10

    return max(0.0, 50 + overdue_days * 5)


def _classify(next_review: Optional[datetime], today: datetime, tomorrow: datetime) -> tuple[str, str]:
    if next_review is None:
        return "new", "New card, review it for the first time today"

    if next_review < today:
        overdue_days = math.ceil((today - next_review) / ONE_DAY)
        return "overdue", f"Overdue by {overdue_days} days, memory may be fading"

    if next_review < tomorrow:
        return "due_today", "Due for review today"

    days_until = math.ceil((next_review - today) / ONE_DAY)
    return "upcoming", f"Review in {days_until} days"


def generate_review_suggestions(cards, limit: int = 10, now: Optional[datetime] = None) -> list[ReviewSuggestion]:
    """
    Rank cards by review priority.

    Urgency uses calendar-day boundaries in the timezone of ``now``, while
    the priority score uses the exact moment.
    """
    if limit <= 0:
        return []

    now = _resolve_now(now)
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    tomorrow = today + ONE_DAY

    suggestions = []
    for card in cards:
        state = getattr(card, "review_state", None)
        urgency, message = _classify(_next_review(card), today, tomorrow)
        suggestions.append(ReviewSuggestion(
            card_id=card.id,
            title=card.title,
            urgency=urgency,
            priority=calculate_priority(state, now),
            message=message,
        ))

    # sorted() is stable, so ties keep input order
    suggestions = sorted(suggestions, key=lambda s: s.priority, reverse=True)
    return suggestions[:limit]

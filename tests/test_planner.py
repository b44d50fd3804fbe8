"""Tests for turning suggestions into plan items."""

from types import SimpleNamespace

from models import ReviewSuggestion
from planner import ROUTINE_ACTION, action_for, actionable, build_smart_plan_items, headline, suggestion_stats


def suggestion(card_id, urgency, priority=50.0):
    return ReviewSuggestion(
        card_id=card_id,
        title=f"card {card_id}",
        urgency=urgency,
        priority=priority,
        message=f"{urgency} message",
    )


def test_action_for_urgency():
    assert action_for("overdue").startswith("Urgent re-review")
    assert action_for("new").startswith("First review")
    assert action_for("due_today") == ROUTINE_ACTION
    assert action_for("upcoming") == ROUTINE_ACTION


def test_suggestion_stats_and_headline():
    suggestions = [
        suggestion(1, "new", 100),
        suggestion(2, "overdue", 80),
        suggestion(3, "overdue", 70),
        suggestion(4, "due_today", 50),
        suggestion(5, "upcoming", 20),
    ]
    stats = suggestion_stats(suggestions, total=12)
    assert stats.total == 12
    assert stats.overdue == 2
    assert stats.due_today == 1
    assert stats.new_cards == 1
    assert headline(stats) == "2 cards are overdue, review them first"


def test_headline_without_overdue():
    stats = suggestion_stats([suggestion(1, "due_today")], total=1)
    assert headline(stats) == "1 cards are due today"
    assert headline(suggestion_stats([], total=0)) == "No urgent reviews"


def test_actionable_keeps_overdue_due_today_and_new():
    suggestions = [
        suggestion(1, "overdue", 90),
        suggestion(2, "upcoming", 30),
        suggestion(3, "new", 100),
        suggestion(4, "due_today", 50),
        suggestion(5, "upcoming", 10),
    ]
    assert [s.card_id for s in actionable(suggestions)] == [1, 3, 4]
    assert actionable([]) == []


def test_build_smart_plan_items():
    cards = {
        1: SimpleNamespace(id=1, record_id=10),
        3: SimpleNamespace(id=3, record_id=30),
    }
    suggestions = [
        suggestion(1, "overdue", 90),
        suggestion(3, "new", 100),
        suggestion(99, "due_today", 50),
    ]
    items = build_smart_plan_items(suggestions, cards)

    assert [item.card_id for item in items] == [1, 3]
    assert items[0].record_id == 10
    assert items[0].reason == "overdue message"
    assert items[0].action == action_for("overdue")
    assert items[1].action == action_for("new")


def test_build_smart_plan_items_limit():
    cards = {i: SimpleNamespace(id=i, record_id=i) for i in range(15)}
    suggestions = [suggestion(i, "new", 100) for i in range(15)]
    assert len(build_smart_plan_items(suggestions, cards)) == 10
    assert len(build_smart_plan_items(suggestions, cards, limit=3)) == 3

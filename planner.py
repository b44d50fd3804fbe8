"""Turns ranked review suggestions into plan items and summary stats."""

from models import PlanItem, ReviewSuggestion, SuggestionStats

URGENCY_ACTIONS = {
    "overdue": "Urgent re-review: revisit the card and complete the self-test",
    "new": "First review: read the card and understand the key points",
}
ROUTINE_ACTION = "Routine review: quick recap and self-test"

ACTIONABLE_URGENCIES = ("overdue", "due_today", "new")


def action_for(urgency: str) -> str:
    return URGENCY_ACTIONS.get(urgency, ROUTINE_ACTION)


def suggestion_stats(suggestions: list[ReviewSuggestion], total: int) -> SuggestionStats:
    return SuggestionStats(
        total=total,
        overdue=sum(1 for s in suggestions if s.urgency == "overdue"),
        due_today=sum(1 for s in suggestions if s.urgency == "due_today"),
        new_cards=sum(1 for s in suggestions if s.urgency == "new"),
    )


def headline(stats: SuggestionStats) -> str:
    if stats.overdue > 0:
        return f"{stats.overdue} cards are overdue, review them first"
    if stats.due_today > 0:
        return f"{stats.due_today} cards are due today"
    return "No urgent reviews"


def actionable(suggestions: list[ReviewSuggestion]) -> list[ReviewSuggestion]:
    """Suggestions that need attention today, in their original order."""
    return [s for s in suggestions if s.urgency in ACTIONABLE_URGENCIES]


def build_smart_plan_items(suggestions: list[ReviewSuggestion], cards_by_id: dict, limit: int = 10) -> list[PlanItem]:
    """
    Plan items for ``suggestions``, usually the output of ``actionable``.

    Suggestions whose card is missing from ``cards_by_id`` are skipped.
    """
    items = []
    for suggestion in suggestions:
        card = cards_by_id.get(suggestion.card_id)
        if card is None:
            continue
        items.append(PlanItem(
            title=suggestion.title,
            action=action_for(suggestion.urgency),
            reason=suggestion.message,
            record_id=card.record_id,
            card_id=suggestion.card_id,
        ))
        if len(items) >= limit:
            break
    return items

"""Tests for database access and review persistence."""

from datetime import datetime, timedelta, timezone

import storage
from models import CardDB, RecordDB, ReviewHistory

NOW = datetime(2026, 10, 19, 15, 0, tzinfo=timezone.utc)


def add_record(db, url, tags=None, title="Page"):
    return storage.add_record(db, RecordDB(
        url=url,
        title=title,
        domain=url.split("/")[2],
        text_hash=url,
        tags=tags or [],
    ))


def add_card(db, record, title="Card", now=NOW):
    return storage.add_card(db, CardDB(record_id=record.id, title=title, summary="s"), now=now)


def test_add_card_initializes_review_state(db):
    card = add_card(db, add_record(db, "https://a.com/1"))
    state = card.review_state

    assert state.review_count == 0
    assert state.ease_factor == 2.5
    assert state.interval == 1
    assert state.last_reviewed_at is None
    assert state.next_review_at == NOW + timedelta(days=1)
    assert state.next_review_at.tzinfo is not None


def test_card_without_state_reads_as_none(db):
    record = add_record(db, "https://a.com/1")
    card = CardDB(record_id=record.id, title="Bare")
    db.add(card)
    db.commit()
    assert card.review_state is None


def test_record_review_persists_state_and_history(db):
    card = add_card(db, add_record(db, "https://a.com/1"))

    reviewed = storage.record_review(db, card.id, 5, now=NOW)
    state = reviewed.review_state
    assert state.review_count == 1
    assert state.interval == 1
    assert state.last_reviewed_at == NOW
    assert state.next_review_at == NOW + timedelta(days=1)

    reviewed = storage.record_review(db, card.id, 4, now=NOW + timedelta(days=1))
    assert reviewed.review_state.interval == 2

    history = db.query(ReviewHistory).filter(ReviewHistory.card_id == card.id).all()
    assert [h.quality for h in history] == [5, 4]
    assert history[-1].interval == 2


def test_record_review_initializes_missing_state(db):
    record = add_record(db, "https://a.com/1")
    card = CardDB(record_id=record.id, title="Bare")
    db.add(card)
    db.commit()

    reviewed = storage.record_review(db, card.id, 5, now=NOW)
    assert reviewed.review_state.review_count == 1


def test_record_review_missing_card(db):
    assert storage.record_review(db, 404, 5) is None


def test_get_cards_newest_first_and_bounded(db):
    record = add_record(db, "https://a.com/1")
    for i in range(5):
        add_card(db, record, title=f"c{i}")

    cards = storage.get_cards(db, limit=3)
    assert [c.title for c in cards] == ["c4", "c3", "c2"]


def test_delete_card(db):
    card = add_card(db, add_record(db, "https://a.com/1"))
    assert storage.delete_card(db, card.id) is True
    assert storage.get_card_by_id(db, card.id) is None
    assert storage.delete_card(db, card.id) is False


def test_related_cards_share_tags(db):
    python_a = add_record(db, "https://a.com/1", tags=["python", "web"])
    python_b = add_record(db, "https://b.com/2", tags=["python"])
    rust = add_record(db, "https://c.com/3", tags=["rust"])

    card = add_card(db, python_a)
    sibling = add_card(db, python_a)
    related = add_card(db, python_b)
    add_card(db, rust)

    result = storage.get_related_cards(db, card.id)
    assert [c.id for c in result] == [related.id]
    assert sibling.id not in [c.id for c in result]


def test_related_cards_without_tags(db):
    card = add_card(db, add_record(db, "https://a.com/1"))
    add_card(db, add_record(db, "https://a.com/2"))
    assert storage.get_related_cards(db, card.id) == []
    assert storage.get_related_cards(db, 999) == []


def test_related_records_same_domain(db):
    first = add_record(db, "https://a.com/1", title="First")
    add_record(db, "https://b.com/1", title="Elsewhere")

    hints = storage.get_related_records(db, "https://a.com/2")
    assert hints == [{
        "record_id": first.id,
        "title": "First",
        "reason": storage.RELATED_RECORD_REASON,
    }]
    assert storage.get_related_records(db, "https://a.com/1") == []
    assert storage.get_related_records(db, "nonsense") == []


def test_record_lookups(db):
    record = add_record(db, "https://a.com/1")
    assert storage.get_record_by_url(db, "https://a.com/1").id == record.id
    assert storage.get_record_by_hash(db, "https://a.com/1").id == record.id
    assert storage.get_record_by_id(db, record.id + 1) is None

    storage.update_record(db, record, summary="done", status="summarized")
    assert storage.get_record_by_id(db, record.id).status == "summarized"

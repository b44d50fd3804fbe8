"""
FastAPI backend for StudyTrace.
Captures web pages, turns them into knowledge cards and schedules their review.
"""

import logging
from contextlib import asynccontextmanager
from datetime import date
from typing import Optional

from fastapi import FastAPI, HTTPException, Depends
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session

from config import Settings, get_settings
from ingest import decide, domain_of, text_hash
from llm import LLMClient
from models import (
    CardDB, PlanDB, RecordDB,
    CardCreate, CardResponse, CardUpdate, DueCardsResponse,
    GeneratePlanRequest, IngestRequest, IngestResponse,
    MemoryHint, MemoryHintsResponse, PlanResponse,
    RecordResponse, ReviewRequest, ReviewResponse,
    SmartPlanRequest, SmartPlanResponse, SuggestionsResponse,
    SummarizeRequest, SummarizeResponse,
    get_engine, init_db, get_session,
)
from planner import actionable, build_smart_plan_items, headline, suggestion_stats
from spaced_rep import generate_review_suggestions, get_due_cards
import storage

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("studytrace.api")

MATURE_INTERVAL_DAYS = 21

engine = get_engine(settings.database_url)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db(engine)
    logger.info("Database initialized at %s", settings.database_url)
    yield


app = FastAPI(
    title="StudyTrace API",
    description="Web page capture, knowledge cards and spaced repetition review",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.cors_allow_origin],
    allow_methods=["*"],
    allow_headers=["*"],
)


# Dependency to get DB session
def get_db():
    session = get_session(engine)
    try:
        yield session
    finally:
        session.close()


# LLM client (lazy loaded)
_llm_client = None

def get_llm():
    global _llm_client
    if _llm_client is None:
        _llm_client = LLMClient.from_settings(settings)
    return _llm_client


def _require_card(db: Session, card_id: int) -> CardDB:
    card = storage.get_card_by_id(db, card_id)
    if not card:
        raise HTTPException(status_code=404, detail="Card not found")
    return card


def _require_record(db: Session, record_id: int) -> RecordDB:
    record = storage.get_record_by_id(db, record_id)
    if not record:
        raise HTTPException(status_code=404, detail="Record not found")
    return record


# --- Routes ---

@app.get("/")
async def root():
    return {"message": "StudyTrace API. Visit /docs for the API reference."}


@app.post("/api/ingest", response_model=IngestResponse)
async def ingest_page(
    request: IngestRequest,
    db: Session = Depends(get_db),
    config: Settings = Depends(get_settings),
):
    """Capture a page, deduplicating by URL and by content."""
    if not request.url or not request.title or not request.text:
        raise HTTPException(status_code=400, detail="Missing required fields")

    text = request.text[:config.max_input_chars]
    digest = text_hash(text)
    preview = text[:config.preview_chars]

    decision = decide(
        storage.get_record_by_url(db, request.url),
        storage.get_record_by_hash(db, digest),
        digest,
    )

    if decision.outcome == "duplicate":
        return IngestResponse(
            record_id=decision.record.id,
            duplicate=True,
            similar_url=decision.similar_url,
            message=decision.message,
        )

    if decision.outcome == "updated":
        storage.update_record(
            db, decision.record,
            text_hash=digest, text_preview=preview, full_text=text, status="updated",
        )
        logger.info("Record %s refreshed from %s", decision.record.id, request.url)
        return IngestResponse(record_id=decision.record.id, updated=True, message=decision.message)

    record = storage.add_record(db, RecordDB(
        url=request.url,
        title=request.title,
        domain=request.domain or domain_of(request.url),
        text_hash=digest,
        text_preview=preview,
        full_text=text,
        status="created",
    ))
    logger.info("Record %s captured from %s", record.id, request.url)
    return IngestResponse(record_id=record.id)


@app.post("/api/summarize", response_model=SummarizeResponse)
def summarize_page(
    request: SummarizeRequest,
    db: Session = Depends(get_db),
    llm: LLMClient = Depends(get_llm),
):
    """Summarize a stored record, or raw text."""
    record = None
    if request.record_id is not None:
        record = _require_record(db, request.record_id)
        title, url = record.title, record.url
        text = record.full_text or record.text_preview or ""
    elif request.text:
        title = request.title or "Untitled"
        url = request.url or ""
        text = request.text
    else:
        raise HTTPException(status_code=400, detail="Missing record_id or text")

    try:
        result = llm.summarize(title, url, text)
    except Exception as e:
        logger.exception("Summarize failed")
        raise HTTPException(status_code=500, detail=f"Summarize failed: {str(e)}")

    if record is not None:
        storage.update_record(db, record, status="summarized", **result)

    return SummarizeResponse(**result)


@app.get("/api/records", response_model=list[RecordResponse])
async def list_records(limit: int = 20, db: Session = Depends(get_db)):
    """List captured records, newest first."""
    return storage.get_records(db, limit=limit)


@app.post("/api/cards", response_model=CardResponse)
def create_card(
    request: CardCreate,
    db: Session = Depends(get_db),
    llm: LLMClient = Depends(get_llm),
):
    """Generate a knowledge card from a record and start its review schedule."""
    record = _require_record(db, request.record_id)
    text = record.full_text or record.text_preview or ""

    try:
        content = llm.generate_card(record.title, record.summary or "", text)
    except Exception as e:
        logger.exception("Card generation failed")
        raise HTTPException(status_code=500, detail=f"Card generation failed: {str(e)}")

    card = storage.add_card(db, CardDB(record_id=record.id, **content.model_dump()))
    logger.info("Card %s created from record %s", card.id, record.id)
    return card


@app.get("/api/cards", response_model=list[CardResponse])
async def list_cards(limit: int = 20, db: Session = Depends(get_db)):
    """List knowledge cards, newest first."""
    return storage.get_cards(db, limit=limit)


@app.get("/api/cards/{card_id}", response_model=CardResponse)
async def get_card(card_id: int, db: Session = Depends(get_db)):
    return _require_card(db, card_id)


@app.put("/api/cards/{card_id}", response_model=CardResponse)
async def edit_card(card_id: int, request: CardUpdate, db: Session = Depends(get_db)):
    """Edit card content. The review schedule only changes through reviews."""
    card = _require_card(db, card_id)
    return storage.update_card(db, card, **request.model_dump(exclude_unset=True, exclude_none=True))


@app.delete("/api/cards/{card_id}")
async def delete_card(card_id: int, db: Session = Depends(get_db)):
    if not storage.delete_card(db, card_id):
        raise HTTPException(status_code=404, detail="Card not found")
    return {"message": "Card deleted"}


@app.get("/api/cards/{card_id}/related", response_model=list[CardResponse])
async def related_cards(card_id: int, limit: int = 5, db: Session = Depends(get_db)):
    """Cards from other records sharing a tag."""
    return storage.get_related_cards(db, card_id, limit=limit)


@app.post("/api/cards/{card_id}/review", response_model=ReviewResponse)
async def review_card(card_id: int, review: ReviewRequest, db: Session = Depends(get_db)):
    """Submit a review result for a card."""
    card = storage.record_review(db, card_id, review.quality)
    if not card:
        raise HTTPException(status_code=404, detail="Card not found")

    state = card.review_state
    if review.quality >= 3:
        message = f"Next review in {state.interval} days"
    else:
        message = "Needs relearning, review again tomorrow"

    return ReviewResponse(
        card=CardResponse.model_validate(card),
        next_review_at=state.next_review_at,
        interval=state.interval,
        message=message,
    )


@app.get("/api/review/due", response_model=DueCardsResponse)
async def due_cards(
    limit: int = 20,
    db: Session = Depends(get_db),
    config: Settings = Depends(get_settings),
):
    """Cards due for review right now (new cards included)."""
    cards = storage.get_cards(db, limit=config.due_scan_limit)
    due = get_due_cards(cards)[:max(0, limit)]
    return DueCardsResponse(
        count=len(due),
        cards=[CardResponse.model_validate(card) for card in due],
    )


@app.get("/api/review/suggestions", response_model=SuggestionsResponse)
async def review_suggestions(
    limit: int = 10,
    db: Session = Depends(get_db),
    config: Settings = Depends(get_settings),
):
    """Cards ranked by review priority."""
    cards = storage.get_cards(db, limit=config.due_scan_limit)
    suggestions = generate_review_suggestions(cards, limit=limit)
    stats = suggestion_stats(suggestions, total=len(cards))
    return SuggestionsResponse(suggestions=suggestions, stats=stats, message=headline(stats))


@app.post("/api/plans/generate/smart", response_model=SmartPlanResponse)
async def generate_smart_plan(
    request: SmartPlanRequest,
    db: Session = Depends(get_db),
    config: Settings = Depends(get_settings),
):
    """Build a review plan from the cards that need attention today."""
    target_date = request.date or date.today().isoformat()

    cards = storage.get_cards(db, limit=config.due_scan_limit)
    suggestions = generate_review_suggestions(cards, limit=20)
    to_review = actionable(suggestions)

    items = build_smart_plan_items(to_review, {card.id: card for card in cards})
    plan = storage.add_plan(db, PlanDB(
        date=target_date,
        items=[item.model_dump() for item in items],
    ))

    return SmartPlanResponse(
        plan=PlanResponse.model_validate(plan),
        stats=suggestion_stats(to_review, total=len(cards)),
    )


@app.post("/api/plans/generate", response_model=PlanResponse)
def generate_plan(
    request: GeneratePlanRequest,
    db: Session = Depends(get_db),
    llm: LLMClient = Depends(get_llm),
):
    """Ask the LLM for a review plan covering the given records."""
    if not request.date or not request.recent_record_ids:
        raise HTTPException(status_code=400, detail="Missing date or recent_record_ids")

    records = [
        {"id": r.id, "title": r.title, "summary": r.summary or "", "tags": r.tags or []}
        for r in (storage.get_record_by_id(db, rid) for rid in request.recent_record_ids)
        if r is not None
    ]
    if not records:
        raise HTTPException(status_code=400, detail="No valid records found")

    try:
        items = llm.generate_plan(request.date, records)
    except Exception as e:
        logger.exception("Plan generation failed")
        raise HTTPException(status_code=500, detail=f"Plan generation failed: {str(e)}")

    return storage.add_plan(db, PlanDB(
        date=request.date,
        items=[item.model_dump() for item in items],
    ))


@app.get("/api/plans", response_model=list[PlanResponse])
async def list_plans(limit: int = 20, db: Session = Depends(get_db)):
    return storage.get_plans(db, limit=limit)


@app.get("/api/memory/hints", response_model=MemoryHintsResponse)
async def memory_hints(url: Optional[str] = None, db: Session = Depends(get_db)):
    """Earlier records from the same site as ``url``."""
    if not url:
        raise HTTPException(status_code=400, detail="Missing url parameter")

    related = [MemoryHint(**hint) for hint in storage.get_related_records(db, url, limit=5)]
    actions = ["Revisit your earlier notes", "Try the self-test questions"] if related else []
    return MemoryHintsResponse(related=related, suggested_actions=actions)


@app.get("/api/stats")
async def get_stats(db: Session = Depends(get_db), config: Settings = Depends(get_settings)):
    """Get learning statistics."""
    cards = storage.get_cards(db, limit=config.due_scan_limit)
    reviewed = [c for c in cards if c.last_reviewed_at is not None]

    return {
        "total": len(cards),
        "due": len(get_due_cards(cards)),
        "new": len(cards) - len(reviewed),
        "learning": sum(1 for c in reviewed if (c.interval or 0) < MATURE_INTERVAL_DAYS),
        "mature": sum(1 for c in reviewed if (c.interval or 0) >= MATURE_INTERVAL_DAYS),
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.port)

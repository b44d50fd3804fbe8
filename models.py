"""
Pydantic & SQLAlchemy models for StudyTrace.
Learning records, knowledge cards with their review state, and review plans.
"""

from datetime import datetime, timezone
from typing import Literal, Optional
from pydantic import BaseModel, Field
from sqlalchemy import Column, Integer, String, Float, DateTime, Text, JSON, create_engine, ForeignKey
from sqlalchemy.orm import declarative_base, sessionmaker, relationship

Base = declarative_base()

Urgency = Literal["overdue", "due_today", "upcoming", "new"]
RecordStatus = Literal["created", "summarized", "updated", "failed"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_aware(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes (e.g. read back from SQLite) as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def to_db_time(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    return as_aware(value).astimezone(timezone.utc)


# Review state (immutable value passed between scheduler calls)
class ReviewState(BaseModel):
    last_reviewed_at: Optional[datetime] = None
    next_review_at: Optional[datetime] = None
    review_count: int = Field(0, ge=0)       # Consecutive successful reviews since last reset
    ease_factor: float = Field(2.5, ge=1.3)
    interval: int = Field(1, ge=1)           # Days

    class Config:
        frozen = True


class ReviewSuggestion(BaseModel):
    card_id: int
    title: str
    urgency: Urgency
    priority: float
    message: str


# SQLAlchemy ORM Models
class RecordDB(Base):
    __tablename__ = "records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    url = Column(String(2048), nullable=False, index=True)
    title = Column(String(500), nullable=False)
    domain = Column(String(255), nullable=False, index=True)
    captured_at = Column(DateTime(timezone=True), default=utcnow)
    text_hash = Column(String(64), nullable=True, index=True)
    text_preview = Column(Text, nullable=True)
    full_text = Column(Text, nullable=True)
    summary = Column(Text, nullable=True)
    key_points = Column(JSON, default=list)
    tags = Column(JSON, default=list)
    status = Column(String(20), default="created")

    cards = relationship("CardDB", back_populates="record", cascade="all, delete-orphan")


class CardDB(Base):
    __tablename__ = "cards"

    id = Column(Integer, primary_key=True, autoincrement=True)
    record_id = Column(Integer, ForeignKey("records.id"), nullable=False, index=True)
    title = Column(String(500), nullable=False)
    summary = Column(Text, nullable=False, default="")
    key_points = Column(JSON, default=list)
    terms = Column(JSON, default=list)
    misconceptions = Column(JSON, default=list)
    self_quiz = Column(JSON, default=list)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    # Review state columns; all null until the state is initialized
    last_reviewed_at = Column(DateTime(timezone=True), nullable=True)
    next_review_at = Column(DateTime(timezone=True), nullable=True, index=True)
    review_count = Column(Integer, nullable=True)
    ease_factor = Column(Float, nullable=True)
    interval = Column(Integer, nullable=True)

    record = relationship("RecordDB", back_populates="cards")
    history = relationship("ReviewHistory", back_populates="card", cascade="all, delete-orphan")

    @property
    def review_state(self) -> Optional[ReviewState]:
        if self.ease_factor is None:
            return None
        return ReviewState(
            last_reviewed_at=as_aware(self.last_reviewed_at),
            next_review_at=as_aware(self.next_review_at),
            review_count=self.review_count or 0,
            ease_factor=self.ease_factor,
            interval=self.interval or 1,
        )

    def apply_review_state(self, state: ReviewState) -> None:
        self.last_reviewed_at = to_db_time(state.last_reviewed_at)
        self.next_review_at = to_db_time(state.next_review_at)
        self.review_count = state.review_count
        self.ease_factor = state.ease_factor
        self.interval = state.interval


class ReviewHistory(Base):
    __tablename__ = "review_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    card_id = Column(Integer, ForeignKey("cards.id"), nullable=False)
    quality = Column(Integer, nullable=False)  # As submitted, before clamping
    reviewed_at = Column(DateTime(timezone=True), default=utcnow)
    interval = Column(Integer, nullable=False)
    ease_factor = Column(Float, nullable=False)

    card = relationship("CardDB", back_populates="history")


class PlanDB(Base):
    __tablename__ = "plans"

    id = Column(Integer, primary_key=True, autoincrement=True)
    date = Column(String(10), nullable=False)  # YYYY-MM-DD
    items = Column(JSON, default=list)
    created_at = Column(DateTime(timezone=True), default=utcnow)


# Pydantic models for API
class IngestRequest(BaseModel):
    url: str
    title: str
    text: str
    domain: Optional[str] = None


class IngestResponse(BaseModel):
    record_id: int
    duplicate: bool = False
    updated: bool = False
    similar_url: Optional[str] = None
    message: Optional[str] = None


class SummarizeRequest(BaseModel):
    """Summarize a stored record by id, or raw text directly."""
    record_id: Optional[int] = None
    text: Optional[str] = None
    url: Optional[str] = None
    title: Optional[str] = None


class SummarizeResponse(BaseModel):
    summary: str
    key_points: list[str] = []
    tags: list[str] = []


class RecordResponse(BaseModel):
    id: int
    url: str
    title: str
    domain: str
    captured_at: datetime
    text_hash: Optional[str] = None
    text_preview: Optional[str] = None
    summary: Optional[str] = None
    key_points: list[str] = []
    tags: list[str] = []
    status: RecordStatus

    class Config:
        from_attributes = True


class Term(BaseModel):
    term: str
    definition: str


class QuizItem(BaseModel):
    q: str
    a: str
    explain: str = ""


class CardContent(BaseModel):
    """Card body as produced by the LLM."""
    title: str
    summary: str = ""
    key_points: list[str] = []
    terms: list[Term] = []
    misconceptions: list[str] = []
    self_quiz: list[QuizItem] = []


class CardCreate(BaseModel):
    record_id: int


class CardUpdate(BaseModel):
    title: Optional[str] = None
    summary: Optional[str] = None
    key_points: Optional[list[str]] = None
    terms: Optional[list[Term]] = None
    misconceptions: Optional[list[str]] = None
    self_quiz: Optional[list[QuizItem]] = None


class CardResponse(CardContent):
    id: int
    record_id: int
    created_at: datetime
    review_state: Optional[ReviewState] = None

    class Config:
        from_attributes = True


class ReviewRequest(BaseModel):
    quality: int = Field(..., description="0=complete blackout, 5=perfect; out-of-range values are clamped")


class ReviewResponse(BaseModel):
    card: CardResponse
    next_review_at: datetime
    interval: int
    message: str


class DueCardsResponse(BaseModel):
    count: int
    cards: list[CardResponse]


class SuggestionStats(BaseModel):
    total: int
    overdue: int
    due_today: int
    new_cards: int


class SuggestionsResponse(BaseModel):
    suggestions: list[ReviewSuggestion]
    stats: SuggestionStats
    message: str


class PlanItem(BaseModel):
    title: str
    action: str
    reason: str
    record_id: Optional[int] = None
    card_id: Optional[int] = None


class PlanResponse(BaseModel):
    id: int
    date: str
    items: list[PlanItem]
    created_at: datetime

    class Config:
        from_attributes = True


class GeneratePlanRequest(BaseModel):
    date: str
    recent_record_ids: list[int]


class SmartPlanRequest(BaseModel):
    date: Optional[str] = None


class SmartPlanResponse(BaseModel):
    plan: PlanResponse
    stats: SuggestionStats


class MemoryHint(BaseModel):
    record_id: int
    title: str
    reason: str


class MemoryHintsResponse(BaseModel):
    related: list[MemoryHint]
    suggested_actions: list[str]


# Database setup
def get_engine(database_url: str = "sqlite:///studytrace.db", **kwargs):
    if database_url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    return create_engine(database_url, echo=False, **kwargs)


def init_db(engine):
    Base.metadata.create_all(engine)


def get_session(engine):
    Session = sessionmaker(bind=engine)
    return Session()

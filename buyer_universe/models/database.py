"""SQLAlchemy database models and setup."""

import json
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.orm import Session, declarative_base, relationship, sessionmaker

from buyer_universe.config import settings

Base = declarative_base()


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JSONColumnsMixin:
    """Rows whose list/dict attributes are stored as JSON text."""

    json_fields: tuple[str, ...] = ()

    def get_json(self, name: str, default: Any = None) -> Any:
        raw = getattr(self, name)
        return json.loads(raw) if raw else default

    def set_json(self, name: str, value: Any):
        setattr(self, name, json.dumps(value) if value is not None else None)

    def to_dict(self) -> dict[str, Any]:
        """Column values with JSON columns decoded."""
        data = {}
        for column in self.__table__.columns:
            if column.name in self.json_fields:
                data[column.name] = self.get_json(column.name)
            else:
                data[column.name] = getattr(self, column.name)
        return data

    def update_from(self, values: dict[str, Any]):
        """Assign known columns from a JSON-compatible dict."""
        columns = self.__table__.columns
        for name, value in values.items():
            if name not in columns or name == "id":
                continue
            if name in self.json_fields:
                self.set_json(name, value)
            else:
                setattr(self, name, value)


class DBTracker(JSONColumnsMixin, Base):
    """An industry vertical's buyer search."""

    __tablename__ = "trackers"

    json_fields = ("size_criteria", "service_criteria", "geography_criteria", "buyer_types_criteria")

    id = Column(String(36), primary_key=True, default=_new_id)
    industry_name = Column(String(255), nullable=False, default="")

    size_criteria_text = Column(Text)
    service_criteria_text = Column(Text)
    geography_criteria_text = Column(Text)
    buyer_types_text = Column(Text)

    size_criteria = Column(Text)  # JSON dict
    service_criteria = Column(Text)  # JSON dict
    geography_criteria = Column(Text)  # JSON dict
    buyer_types_criteria = Column(Text)  # JSON dict

    geography_strictness = Column(String(20))
    size_importance = Column(String(20))

    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    buyers = relationship("DBBuyer", back_populates="tracker", cascade="all, delete-orphan")
    deals = relationship("DBDeal", back_populates="tracker", cascade="all, delete-orphan")


class DBCompany(Base):
    """A target company, unique by normalized domain across trackers."""

    __tablename__ = "companies"

    id = Column(String(36), primary_key=True, default=_new_id)
    domain = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(500))
    website = Column(String(1000))
    created_at = Column(DateTime, default=_utcnow)

    deals = relationship("DBDeal", back_populates="company")


class DBBuyer(JSONColumnsMixin, Base):
    """A prospective acquirer in one tracker."""

    __tablename__ = "buyers"

    json_fields = (
        "target_geographies", "geographic_footprint", "service_regions",
        "geographic_exclusions", "target_services", "required_services",
        "preferred_services", "excluded_services", "industry_exclusions",
        "key_quotes", "extraction_sources",
    )

    id = Column(String(36), primary_key=True, default=_new_id)
    tracker_id = Column(String(36), ForeignKey("trackers.id", ondelete="CASCADE"), nullable=False)

    pe_firm_name = Column(String(500))
    platform_company_name = Column(String(500))
    website = Column(String(1000))

    hq_state = Column(String(100))
    hq_city = Column(String(255))
    target_geographies = Column(Text)  # JSON array
    geographic_footprint = Column(Text)  # JSON array
    service_regions = Column(Text)  # JSON array
    geographic_exclusions = Column(Text)  # JSON array

    services_offered = Column(Text)
    target_services = Column(Text)  # JSON array
    required_services = Column(Text)  # JSON array
    preferred_services = Column(Text)  # JSON array
    excluded_services = Column(Text)  # JSON array
    industry_exclusions = Column(Text)  # JSON array

    min_revenue = Column(Float)
    max_revenue = Column(Float)
    min_ebitda = Column(Float)
    max_ebitda = Column(Float)
    revenue_sweet_spot = Column(Float)
    location_count = Column(Integer)
    platform_revenue = Column(Float)

    thesis_summary = Column(Text)
    key_quotes = Column(Text)  # JSON array
    acquisition_appetite = Column(Text)
    owner_transition_goals = Column(Text)

    contact_name = Column(String(255))
    contact_email = Column(String(255))

    extraction_sources = Column(Text)  # JSON array of {source, timestamp, fields}

    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    tracker = relationship("DBTracker", back_populates="buyers")
    scores = relationship("DBBuyerDealScore", back_populates="buyer", cascade="all, delete-orphan")

    __table_args__ = (Index("idx_buyer_tracker", "tracker_id"),)


class DBDeal(JSONColumnsMixin, Base):
    """A target company opportunity in one tracker."""

    __tablename__ = "deals"

    json_fields = ("geography", "service_mix", "extraction_sources")

    id = Column(String(36), primary_key=True, default=_new_id)
    tracker_id = Column(String(36), ForeignKey("trackers.id", ondelete="CASCADE"), nullable=False)
    company_id = Column(String(36), ForeignKey("companies.id"))

    deal_name = Column(String(500))
    website = Column(String(1000))

    revenue = Column(Float)
    ebitda_amount = Column(Float)
    ebitda_percentage = Column(Float)
    location_count = Column(Integer)

    geography = Column(Text)  # JSON array
    headquarters = Column(String(500))
    service_mix = Column(Text)  # JSON array
    industry_type = Column(String(255))
    owner_goals = Column(Text)

    extraction_sources = Column(Text)  # JSON array of {source, timestamp, fields}

    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    tracker = relationship("DBTracker", back_populates="deals")
    company = relationship("DBCompany", back_populates="deals")
    scores = relationship("DBBuyerDealScore", back_populates="deal", cascade="all, delete-orphan")

    __table_args__ = (Index("idx_deal_tracker", "tracker_id"),)


class DBBuyerDealScore(JSONColumnsMixin, Base):
    """Latest fit score for a buyer/deal pair. Rescoring overwrites in place."""

    __tablename__ = "buyer_deal_scores"

    json_fields = ("subscores", "disqualifications", "reasons", "readiness")

    id = Column(Integer, primary_key=True, autoincrement=True)
    buyer_id = Column(String(36), ForeignKey("buyers.id", ondelete="CASCADE"), nullable=False)
    deal_id = Column(String(36), ForeignKey("deals.id", ondelete="CASCADE"), nullable=False)
    tracker_id = Column(String(36))

    buyer_name = Column(String(500))
    status = Column(String(30), nullable=False)
    composite = Column(Integer)
    subscores = Column(Text)  # JSON dict
    disqualified = Column(Boolean, default=False)
    disqualifications = Column(Text)  # JSON array
    reasons = Column(Text)  # JSON array
    data_completeness = Column(String(20))
    buyer_type = Column(String(255))
    readiness = Column(Text)  # JSON dict
    rank = Column(Integer)

    # Analyst follow-up, preserved across rescoring
    interested = Column(Boolean)
    passed = Column(Boolean, default=False)
    pass_reason = Column(Text)
    approved = Column(Boolean, default=False)

    scored_at = Column(DateTime, default=_utcnow)

    buyer = relationship("DBBuyer", back_populates="scores")
    deal = relationship("DBDeal", back_populates="scores")

    __table_args__ = (
        UniqueConstraint("buyer_id", "deal_id", name="uq_score_buyer_deal"),
        Index("idx_score_deal", "deal_id"),
        Index("idx_score_composite", "composite"),
    )


# Database initialization
_SessionLocal: Optional[sessionmaker] = None


def init_db(db_url: Optional[str] = None) -> sessionmaker:
    """Initialize database and return session maker. Later get_session() calls use it."""
    global _SessionLocal
    url = db_url or settings.database_url
    engine = create_engine(url, echo=False)
    Base.metadata.create_all(engine)
    _SessionLocal = sessionmaker(bind=engine, expire_on_commit=False)
    return _SessionLocal


def get_session() -> Session:
    """Get a new database session."""
    if _SessionLocal is None:
        init_db()
    return _SessionLocal()

"""
SQLAlchemy Models for the AI-Visibility Audit Engine

Design Principles:
1. One row per natural key (upserts overwrite, never accumulate)
2. Raw GSC series stored as collected (calibration source of truth)
3. Derived rollups stored per run so trends can be replayed
4. Nested audit payloads kept as JSON (JSONB on PostgreSQL)
"""

import enum
from datetime import datetime, timezone

from sqlalchemy import (
    Column, String, Integer, Float, Boolean, Date, DateTime, Text,
    Index, UniqueConstraint, JSON,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in development and tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


# =============================================================================
# ENUMS
# =============================================================================

class TaskStatus(enum.Enum):
    """Lifecycle of an optimisation task"""
    PLANNED = "planned"
    IN_PROGRESS = "in_progress"
    MONITORING = "monitoring"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


ACTIVE_TASK_STATUSES = (
    TaskStatus.PLANNED.value,
    TaskStatus.IN_PROGRESS.value,
    TaskStatus.MONITORING.value,
)


# =============================================================================
# AUDIT RESULTS
# =============================================================================

class AuditResult(Base):
    """One audit per property per day"""
    __tablename__ = "audit_results"

    id = Column(Integer, primary_key=True, autoincrement=True)
    property_url = Column(String(500), nullable=False)
    audit_date = Column(Date, nullable=False)

    # Headline pillars
    visibility_score = Column(Integer)
    authority_score = Column(Integer)
    content_schema_score = Column(Integer)
    local_entity_score = Column(Integer)
    service_area_score = Column(Integer)
    brand_score = Column(Integer)
    snippet_readiness = Column(Integer)

    # Full payloads
    scores = Column(JSONType)
    search_totals = Column(JSONType)
    money_pages_metrics = Column(JSONType)
    money_pages_summary = Column(JSONType)
    money_page_priority = Column(JSONType)
    money_segment_summary = Column(JSONType)
    backlink_metrics = Column(JSONType)
    ranking_ai_data = Column(JSONType)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("property_url", "audit_date", name="uq_audit_property_date"),
    )


class KeywordRanking(Base):
    """Organic rank and AI citations for one keyword on one audit date"""
    __tablename__ = "keyword_rankings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    property_url = Column(String(500), nullable=False)
    audit_date = Column(Date, nullable=False)
    keyword = Column(String(500), nullable=False)

    # Segment
    segment = Column(String(20))
    segment_source = Column(String(20), default="auto")
    segment_confidence = Column(Float)
    segment_reason = Column(Text)

    # Organic SERP
    best_rank_group = Column(Integer)
    best_rank_absolute = Column(Integer)
    best_url = Column(Text)
    best_title = Column(Text)
    serp_features = Column(JSONType)
    search_volume = Column(Integer)
    search_volume_trend = Column(JSONType)

    # AI overview
    has_ai_overview = Column(Boolean, default=False)
    ai_total_citations = Column(Integer, default=0)
    ai_alan_citations_count = Column(Integer, default=0)
    ai_alan_citations = Column(JSONType)
    ai_sample_citations = Column(JSONType)

    # SERP feature presence
    ai_overview_present_any = Column(Boolean, default=False)
    local_pack_present_any = Column(Boolean, default=False)
    paa_present_any = Column(Boolean, default=False)
    featured_snippet_present_any = Column(Boolean, default=False)

    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("property_url", "audit_date", "keyword", name="uq_keyword_property_date"),
        Index("idx_keyword_rankings_property_date", "property_url", "audit_date"),
    )


# =============================================================================
# GSC SERIES
# =============================================================================

class GscTimeseries(Base):
    """Site totals per day, matching the GSC headline numbers"""
    __tablename__ = "gsc_timeseries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    property_url = Column(String(500), nullable=False)
    date = Column(Date, nullable=False)
    clicks = Column(Integer, default=0)
    impressions = Column(Integer, default=0)
    ctr = Column(Float, default=0.0)
    position = Column(Float)

    __table_args__ = (
        UniqueConstraint("property_url", "date", name="uq_gsc_timeseries_property_date"),
    )


class GscPageTimeseries(Base):
    """Money page metrics per day; page_url is a host-less path"""
    __tablename__ = "gsc_page_timeseries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    property_url = Column(String(500), nullable=False)
    page_url = Column(String(1000), nullable=False)
    date = Column(Date, nullable=False)
    clicks = Column(Integer, default=0)
    impressions = Column(Integer, default=0)
    ctr = Column(Float, default=0.0)
    position = Column(Float)

    __table_args__ = (
        UniqueConstraint("property_url", "page_url", "date", name="uq_gsc_page_timeseries"),
        Index("idx_gsc_page_timeseries_property_date", "property_url", "date"),
    )


class GscPageMetrics28d(Base):
    """Per-page metrics over a run's 28-day window"""
    __tablename__ = "gsc_page_metrics_28d"

    id = Column(Integer, primary_key=True, autoincrement=True)
    run_id = Column(String(100), nullable=False)
    site_url = Column(String(500), nullable=False)
    page_url = Column(String(1000), nullable=False)
    date_start = Column(Date)
    date_end = Column(Date)
    clicks_28d = Column(Float, default=0.0)
    impressions_28d = Column(Float, default=0.0)
    ctr_28d = Column(Float, default=0.0)
    position_28d = Column(Float)

    __table_args__ = (
        UniqueConstraint("run_id", "site_url", "page_url", name="uq_page_metrics_run_page"),
        Index("idx_page_metrics_run", "run_id"),
    )


# =============================================================================
# PORTFOLIO ROLLUPS
# =============================================================================

class PortfolioSegmentMetrics(Base):
    """Per-segment rollup of one run, per scope"""
    __tablename__ = "portfolio_segment_metrics_28d"

    id = Column(Integer, primary_key=True, autoincrement=True)
    run_id = Column(String(100), nullable=False)
    site_url = Column(String(500), nullable=False)
    segment = Column(String(30), nullable=False)
    scope = Column(String(30), nullable=False)
    date_start = Column(Date)
    date_end = Column(Date)
    pages_count = Column(Integer, default=0)
    clicks_28d = Column(Float, default=0.0)
    impressions_28d = Column(Float, default=0.0)
    ctr_28d = Column(Float, default=0.0)
    position_28d = Column(Float)
    ai_citations_28d = Column(Integer, default=0)
    ai_overview_present_count = Column(Integer, default=0)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("run_id", "site_url", "segment", "scope", name="uq_portfolio_segment"),
    )


class DashboardSubsegmentWindow(Base):
    """Trailing-window rollup of a money sub-segment (or the rest of the site)"""
    __tablename__ = "dashboard_subsegment_windows"

    id = Column(Integer, primary_key=True, autoincrement=True)
    run_id = Column(String(100), nullable=False)
    site_url = Column(String(500), nullable=False)
    scope = Column(String(30), nullable=False)
    window_days = Column(Integer, nullable=False)
    segment = Column(String(30), nullable=False)
    date_start = Column(Date)
    date_end = Column(Date)
    pages_count = Column(Integer, default=0)
    clicks = Column(Float, default=0.0)
    impressions = Column(Float, default=0.0)
    ctr = Column(Float, default=0.0)
    avg_position = Column(Float)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint(
            "run_id", "site_url", "scope", "window_days", "segment",
            name="uq_subsegment_window",
        ),
    )


# =============================================================================
# OPTIMISATION TASKS
# =============================================================================

class OptimisationTask(Base):
    """A page being actively optimised; active tasks define the tracked set"""
    __tablename__ = "optimisation_tasks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    keyword = Column(String(500))
    target_url = Column(Text, nullable=False)
    target_url_clean = Column(Text)
    status = Column(String(20), default=TaskStatus.PLANNED.value, nullable=False)
    cycle_active = Column(Integer, default=1)
    title = Column(String(500))
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("idx_optimisation_tasks_status", "status"),
    )

"""
AI-Visibility Audit Database Layer

Usage:
    from src.database import (
        # Session management
        init_db, get_db, get_db_context,

        # Models
        AuditResult, PortfolioSegmentMetrics, OptimisationTask,

        # Repository
        upsert_portfolio_segment_rows, get_latest_audit,

        # Pipelines
        backfill_portfolio_segments, backfill_subsegment_windows,
    )

    init_db()

    with get_db_context() as db:
        results = backfill_portfolio_segments(db, site_url="https://www.example.com")
"""

# Models
from .models import (
    Base,
    AuditResult,
    KeywordRanking,
    GscTimeseries,
    GscPageTimeseries,
    GscPageMetrics28d,
    PortfolioSegmentMetrics,
    DashboardSubsegmentWindow,
    OptimisationTask,
    TaskStatus,
    ACTIVE_TASK_STATUSES,
)

# Session management
from .session import (
    get_database_url,
    create_db_engine,
    configure_engine,
    get_engine,
    get_db,
    get_db_context,
    init_db,
    check_db_connection,
)

# Repository
from .repository import (
    to_jsonable,
    upsert_rows,
    upsert_audit_result,
    save_ranking_ai_data,
    get_latest_audit,
    upsert_keyword_rankings,
    get_latest_keyword_rankings,
    upsert_gsc_timeseries,
    upsert_page_timeseries,
    upsert_page_metrics_28d,
    get_site_timeseries,
    get_page_timeseries,
    get_page_metrics,
    list_run_ids,
    get_active_task_urls,
    upsert_portfolio_segment_rows,
    get_portfolio_segment_rows,
    upsert_subsegment_windows,
)

# Pipelines
from .pipeline import (
    BackfillResult,
    backfill_run_segments,
    backfill_portfolio_segments,
    backfill_subsegment_windows,
    save_keyword_ranking_run,
)

__all__ = [
    # Models
    "Base",
    "AuditResult",
    "KeywordRanking",
    "GscTimeseries",
    "GscPageTimeseries",
    "GscPageMetrics28d",
    "PortfolioSegmentMetrics",
    "DashboardSubsegmentWindow",
    "OptimisationTask",
    "TaskStatus",
    "ACTIVE_TASK_STATUSES",
    # Session
    "get_database_url",
    "create_db_engine",
    "configure_engine",
    "get_engine",
    "get_db",
    "get_db_context",
    "init_db",
    "check_db_connection",
    # Repository
    "to_jsonable",
    "upsert_rows",
    "upsert_audit_result",
    "save_ranking_ai_data",
    "get_latest_audit",
    "upsert_keyword_rankings",
    "get_latest_keyword_rankings",
    "upsert_gsc_timeseries",
    "upsert_page_timeseries",
    "upsert_page_metrics_28d",
    "get_site_timeseries",
    "get_page_timeseries",
    "get_page_metrics",
    "list_run_ids",
    "get_active_task_urls",
    "upsert_portfolio_segment_rows",
    "get_portfolio_segment_rows",
    "upsert_subsegment_windows",
    # Pipelines
    "BackfillResult",
    "backfill_run_segments",
    "backfill_portfolio_segments",
    "backfill_subsegment_windows",
    "save_keyword_ranking_run",
]

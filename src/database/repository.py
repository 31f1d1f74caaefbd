"""
Repository Layer - Clean Interface for Data Operations

Every writer is an idempotent upsert on the table's natural key
(``INSERT ... ON CONFLICT DO UPDATE``), so recomputing a run overwrites
its rows instead of adding to them. Callers own the session and the
transaction.
"""

import dataclasses
import enum
import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from .models import (
    ACTIVE_TASK_STATUSES,
    AuditResult,
    DashboardSubsegmentWindow,
    GscPageMetrics28d,
    GscPageTimeseries,
    GscTimeseries,
    KeywordRanking,
    OptimisationTask,
    PortfolioSegmentMetrics,
)

logger = logging.getLogger(__name__)

UPSERT_CHUNK_SIZE = 500


# =============================================================================
# UPSERT HELPERS
# =============================================================================

def to_jsonable(value: Any) -> Any:
    """Dataclasses, enums and dates reduced to JSON-compatible values."""
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return to_jsonable(dataclasses.asdict(value))
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [to_jsonable(v) for v in value]
    return value


def _insert_for(db: Session):
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise NotImplementedError(f"Upsert not supported for dialect {dialect}")
    return insert


def _column_values(model, data: Dict[str, Any]) -> Dict[str, Any]:
    columns = {c.name for c in model.__table__.columns} - {"id", "created_at"}
    values = {k: v for k, v in data.items() if k in columns}
    if "updated_at" in columns:
        values["updated_at"] = datetime.now(timezone.utc)
    return values


def upsert_rows(
    db: Session,
    model,
    rows: Sequence[Dict[str, Any]],
    conflict_columns: Sequence[str],
) -> int:
    """
    Insert rows, updating the non-key columns of rows whose key exists.

    Rows are padded to a common column set so each chunk is one statement.

    Returns:
        Number of rows written
    """
    if not rows:
        return 0

    insert = _insert_for(db)
    prepared = [_column_values(model, r) for r in rows]
    keys = sorted({k for r in prepared for k in r})
    prepared = [{k: r.get(k) for k in keys} for r in prepared]
    update_keys = [k for k in keys if k not in conflict_columns]

    for i in range(0, len(prepared), UPSERT_CHUNK_SIZE):
        stmt = insert(model).values(prepared[i:i + UPSERT_CHUNK_SIZE])
        if update_keys:
            stmt = stmt.on_conflict_do_update(
                index_elements=list(conflict_columns),
                set_={k: stmt.excluded[k] for k in update_keys},
            )
        else:
            stmt = stmt.on_conflict_do_nothing(index_elements=list(conflict_columns))
        db.execute(stmt)

    db.flush()
    logger.info(f"Upserted {len(prepared)} rows into {model.__tablename__}")
    return len(prepared)


def _as_dict(row: Any) -> Dict[str, Any]:
    if isinstance(row, dict):
        return row
    if hasattr(row, "to_dict"):
        return row.to_dict()
    return dataclasses.asdict(row)


def _parse_date(value: Any) -> Optional[date]:
    if value is None or isinstance(value, date) and not isinstance(value, datetime):
        return value
    if isinstance(value, datetime):
        return value.date()
    return date.fromisoformat(str(value)[:10])


# =============================================================================
# AUDIT RESULTS
# =============================================================================

def upsert_audit_result(db: Session, result: Any) -> int:
    """Store an audit run (``src.audit.AuditResult``), keyed by property and date."""
    scores = result.scores
    return upsert_rows(db, AuditResult, [{
        "property_url": result.property_url,
        "audit_date": result.audit_date,
        "visibility_score": scores.visibility,
        "authority_score": scores.authority.score,
        "content_schema_score": scores.content_schema,
        "local_entity_score": scores.local_entity,
        "service_area_score": scores.service_area,
        "brand_score": scores.brand_overlay.score,
        "snippet_readiness": result.snippet_readiness,
        "scores": to_jsonable(scores),
        "search_totals": to_jsonable(result.search_totals),
        "money_pages_metrics": to_jsonable(result.money_pages),
        "money_pages_summary": to_jsonable(result.money_pages_summary),
        "money_page_priority": to_jsonable(result.money_page_priority),
        "money_segment_summary": to_jsonable(result.money_segment_summary),
        "backlink_metrics": to_jsonable(result.backlink_metrics),
    }], ("property_url", "audit_date"))


def save_ranking_ai_data(
    db: Session,
    property_url: str,
    audit_date: date,
    payload: Dict[str, Any],
) -> int:
    """Attach keyword ranking results to the day's audit row, leaving scores as they are."""
    return upsert_rows(db, AuditResult, [{
        "property_url": property_url,
        "audit_date": audit_date,
        "ranking_ai_data": to_jsonable(payload),
    }], ("property_url", "audit_date"))


def get_latest_audit(db: Session, property_url: str) -> Optional[AuditResult]:
    return db.execute(
        select(AuditResult)
        .where(AuditResult.property_url == property_url)
        .order_by(AuditResult.audit_date.desc())
        .limit(1)
    ).scalar_one_or_none()


# =============================================================================
# KEYWORD RANKINGS
# =============================================================================

def upsert_keyword_rankings(
    db: Session,
    property_url: str,
    audit_date: date,
    rows: Iterable[Dict[str, Any]],
) -> int:
    """Store combined keyword rows for one audit date."""
    prepared = [
        {**row, "property_url": property_url, "audit_date": audit_date}
        for row in rows
        if row.get("keyword")
    ]
    return upsert_rows(db, KeywordRanking, prepared, ("property_url", "audit_date", "keyword"))


def get_latest_keyword_rankings(db: Session, property_url: str) -> List[Dict[str, Any]]:
    """Keyword rows from the most recent audit date, as dicts."""
    latest = db.execute(
        select(func.max(KeywordRanking.audit_date)).where(KeywordRanking.property_url == property_url)
    ).scalar()
    if latest is None:
        return []
    records = db.execute(
        select(KeywordRanking).where(
            KeywordRanking.property_url == property_url,
            KeywordRanking.audit_date == latest,
        )
    ).scalars().all()
    return [_model_to_dict(r) for r in records]


# =============================================================================
# GSC SERIES
# =============================================================================

def upsert_gsc_timeseries(db: Session, property_url: str, series: Iterable[Dict[str, Any]]) -> int:
    rows = [
        {
            "property_url": property_url,
            "date": _parse_date(r["date"]),
            "clicks": int(r.get("clicks") or 0),
            "impressions": int(r.get("impressions") or 0),
            "ctr": r.get("ctr") or 0.0,
            "position": r.get("position"),
        }
        for r in series
    ]
    return upsert_rows(db, GscTimeseries, rows, ("property_url", "date"))


def upsert_page_timeseries(db: Session, property_url: str, rows: Iterable[Dict[str, Any]]) -> int:
    prepared = [
        {
            "property_url": property_url,
            "page_url": r["page_url"],
            "date": _parse_date(r["date"]),
            "clicks": int(r.get("clicks") or 0),
            "impressions": int(r.get("impressions") or 0),
            "ctr": r.get("ctr") or 0.0,
            "position": r.get("position"),
        }
        for r in rows
    ]
    return upsert_rows(db, GscPageTimeseries, prepared, ("property_url", "page_url", "date"))


def upsert_page_metrics_28d(
    db: Session,
    run_id: str,
    site_url: str,
    pages: Iterable[Dict[str, Any]],
    date_start: Optional[date] = None,
    date_end: Optional[date] = None,
) -> int:
    prepared = [
        {
            "run_id": run_id,
            "site_url": site_url,
            "page_url": p["page_url"],
            "date_start": date_start,
            "date_end": date_end,
            "clicks_28d": p.get("clicks_28d", 0.0),
            "impressions_28d": p.get("impressions_28d", 0.0),
            "ctr_28d": p.get("ctr_28d", 0.0),
            "position_28d": p.get("position_28d"),
        }
        for p in pages
    ]
    return upsert_rows(db, GscPageMetrics28d, prepared, ("run_id", "site_url", "page_url"))


def _series_to_dicts(records) -> List[Dict[str, Any]]:
    return [
        {
            "date": r.date,
            "clicks": r.clicks,
            "impressions": r.impressions,
            "ctr": r.ctr,
            "position": r.position,
            **({"page_url": r.page_url} if hasattr(r, "page_url") else {}),
        }
        for r in records
    ]


def get_site_timeseries(
    db: Session,
    property_url: str,
    date_start: Optional[date] = None,
    date_end: Optional[date] = None,
) -> List[Dict[str, Any]]:
    """Daily site rows in date order, optionally bounded."""
    query = select(GscTimeseries).where(GscTimeseries.property_url == property_url)
    if date_start:
        query = query.where(GscTimeseries.date >= date_start)
    if date_end:
        query = query.where(GscTimeseries.date <= date_end)
    records = db.execute(query.order_by(GscTimeseries.date)).scalars().all()
    return _series_to_dicts(records)


def property_candidates(property_url: str) -> List[str]:
    """The property as given, with and without a scheme, with/without ``www.``."""
    trimmed = (property_url or "").strip().rstrip("/")
    if not trimmed:
        return []
    with_scheme = trimmed if trimmed.startswith(("http://", "https://")) else f"https://{trimmed}"
    host = with_scheme.split("://", 1)[1]
    alternate = host[4:] if host.startswith("www.") else f"www.{host}"
    return list(dict.fromkeys([trimmed, with_scheme, f"https://{alternate}", host, alternate]))


def get_page_timeseries(
    db: Session,
    property_url: str,
    date_start: Optional[date] = None,
    date_end: Optional[date] = None,
) -> List[Dict[str, Any]]:
    """Daily page rows stored under any spelling of the property."""
    query = select(GscPageTimeseries).where(
        GscPageTimeseries.property_url.in_(property_candidates(property_url))
    )
    if date_start:
        query = query.where(GscPageTimeseries.date >= date_start)
    if date_end:
        query = query.where(GscPageTimeseries.date <= date_end)
    return _series_to_dicts(db.execute(query).scalars().all())


def get_page_metrics(db: Session, run_id: str) -> List[GscPageMetrics28d]:
    return list(db.execute(
        select(GscPageMetrics28d).where(GscPageMetrics28d.run_id == run_id)
    ).scalars().all())


def list_run_ids(db: Session, site_url: Optional[str] = None) -> List[str]:
    """Distinct run ids with page metrics, oldest window first."""
    query = select(GscPageMetrics28d.run_id, func.max(GscPageMetrics28d.date_end)).group_by(
        GscPageMetrics28d.run_id
    )
    if site_url:
        query = query.where(GscPageMetrics28d.site_url == site_url)
    rows = db.execute(query).all()
    return [run_id for run_id, _ in sorted(rows, key=lambda r: (r[1] or date.min, r[0]))]


# =============================================================================
# OPTIMISATION TASKS
# =============================================================================

def get_active_task_urls(db: Session) -> List[str]:
    """Target URLs of tasks in an active status with an active cycle."""
    records = db.execute(
        select(OptimisationTask.target_url_clean, OptimisationTask.target_url).where(
            OptimisationTask.status.in_(ACTIVE_TASK_STATUSES),
            OptimisationTask.cycle_active > 0,
        )
    ).all()
    return [clean or raw for clean, raw in records if clean or raw]


# =============================================================================
# PORTFOLIO ROLLUPS
# =============================================================================

def upsert_portfolio_segment_rows(db: Session, rows: Iterable[Any]) -> int:
    prepared = [_as_dict(r) for r in rows]
    return upsert_rows(
        db, PortfolioSegmentMetrics, prepared, ("run_id", "site_url", "segment", "scope")
    )


def get_portfolio_segment_rows(
    db: Session,
    run_id: str,
    site_url: Optional[str] = None,
    scope: Optional[str] = None,
) -> List[Dict[str, Any]]:
    query = select(PortfolioSegmentMetrics).where(PortfolioSegmentMetrics.run_id == run_id)
    if site_url:
        query = query.where(PortfolioSegmentMetrics.site_url == site_url)
    if scope:
        query = query.where(PortfolioSegmentMetrics.scope == scope)
    return [_model_to_dict(r) for r in db.execute(query).scalars().all()]


def upsert_subsegment_windows(db: Session, rows: Iterable[Any]) -> int:
    prepared = [_as_dict(r) for r in rows]
    return upsert_rows(
        db,
        DashboardSubsegmentWindow,
        prepared,
        ("run_id", "site_url", "scope", "window_days", "segment"),
    )


def _model_to_dict(record) -> Dict[str, Any]:
    return {c.name: getattr(record, c.name) for c in record.__table__.columns}

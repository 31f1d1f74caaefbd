"""
Money Page Analyzer

Two views over the site's money pages:

1. **Opportunity categories** - each money page is HIGH_OPPORTUNITY,
   MAINTAIN or VISIBILITY_FIX with a templated recommendation.

   HIGH_OPPORTUNITY: 3 <= position <= 15, impressions >= 100 and CTR below
   the band target (5% up to pos 6, 3% up to pos 10, 2% up to pos 15).
   MAINTAIN: position <= 8, CTR >= 3%, impressions >= 100.
   Everything else is VISIBILITY_FIX.

2. **Priority grid** - impact × difficulty → priority.

   Lost clicks = impressions × max(0, expected_ctr(pos) − ctr)
   Impact is relative to the largest lost-clicks value in the batch
   (>= 75% HIGH, >= 35% MEDIUM, else LOW), so the same page can land in a
   different band when scored alongside a different set of pages.
"""

import logging
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Dict, Any, List, Optional, Iterable, Sequence

from src.models import PageRow, as_page_row, as_query_row, normalise_ctr
from src.segment import (
    PageSegment,
    MoneySubSegment,
    classify_page_segment,
    classify_money_sub_segment,
)
from src.utils.urls import normalise_path
from .behaviour import compute_behaviour_score
from .helpers import expected_ctr_for_position, safe_ratio, weighted_average_position

logger = logging.getLogger(__name__)

ROW_ERRORS = (TypeError, ValueError, AttributeError)


# ============================================================================
# ENUMS & CONSTANTS
# ============================================================================

class OpportunityCategory(str, Enum):
    """Opportunity category of a money page."""
    HIGH_OPPORTUNITY = "HIGH_OPPORTUNITY"
    VISIBILITY_FIX = "VISIBILITY_FIX"
    MAINTAIN = "MAINTAIN"

    @property
    def label(self) -> str:
        return CATEGORY_DISPLAY[self][0]

    @property
    def color(self) -> str:
        return CATEGORY_DISPLAY[self][1]


CATEGORY_DISPLAY = {
    OpportunityCategory.HIGH_OPPORTUNITY: ("High opportunity (improve CTR)", "amber"),
    OpportunityCategory.MAINTAIN: ("Maintain (performing well)", "green"),
    OpportunityCategory.VISIBILITY_FIX: ("Visibility fix (low impressions/rank)", "red"),
}

# Display order of the money-pages table
CATEGORY_ORDER = {
    OpportunityCategory.HIGH_OPPORTUNITY: 0,
    OpportunityCategory.VISIBILITY_FIX: 1,
    OpportunityCategory.MAINTAIN: 2,
}


class Level(str, Enum):
    """Impact / difficulty / priority band."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


MIN_IMPRESSIONS = 100
HIGH_OPP_MIN_POS = 3
HIGH_OPP_MAX_POS = 15
MAINTAIN_MAX_POS = 8
UNKNOWN_POSITION = 99

TARGET_CTR_TOP = 0.05      # position <= 6
TARGET_CTR_MID = 0.03      # 6 < position <= 10
TARGET_CTR_LOW = 0.02      # 10 < position <= 15

DESIRED_SCHEMA_TYPES = ("Product", "Event", "FAQPage")

KEY_SCHEMA_BY_SUB_SEGMENT = {
    MoneySubSegment.EVENT: frozenset({"event", "course"}),
    MoneySubSegment.PRODUCT: frozenset({"product", "offer"}),
    MoneySubSegment.LANDING: frozenset({"itemlist", "faqpage", "article"}),
}

HIGH_IMPACT_SHARE = 0.75
MEDIUM_IMPACT_SHARE = 0.35


# ============================================================================
# SCHEMA HELPERS
# ============================================================================

def schema_type_names(schema_types: Optional[Iterable[Any]]) -> List[str]:
    """Lower-cased type names from strings or ``{"type": ...}`` objects."""
    names = []
    for item in schema_types or ():
        if isinstance(item, str):
            name = item
        elif isinstance(item, dict) and isinstance(item.get("type"), str):
            name = item["type"]
        else:
            continue
        name = name.strip().lower()
        if name:
            names.append(name)
    return names


@dataclass
class SchemaLookup:
    """Per-page schema presence keyed by raw URL and normalised path."""
    has_schema: Dict[str, bool] = field(default_factory=dict)
    schema_types: Dict[str, List[Any]] = field(default_factory=dict)

    @classmethod
    def from_audit(cls, schema_audit: Optional[Dict[str, Any]]) -> "SchemaLookup":
        lookup = cls()
        if not schema_audit or schema_audit.get("status") != "ok":
            return lookup
        pages = (schema_audit.get("data") or {}).get("pages") or []
        for page in pages:
            url = page.get("url")
            if not url:
                continue
            present = bool(page.get("hasSchema") or page.get("hasInheritedSchema"))
            types = list(page.get("schemaTypes") or [])
            for key in (url, normalise_path(url)):
                lookup.has_schema[key] = present
                lookup.schema_types[key] = types
        return lookup

    def presence(self, url: str) -> Optional[bool]:
        if url in self.has_schema:
            return self.has_schema[url]
        return self.has_schema.get(normalise_path(url))

    def types(self, url: str) -> List[Any]:
        return self.schema_types.get(url) or self.schema_types.get(normalise_path(url)) or []


# ============================================================================
# OPPORTUNITY CLASSIFICATION
# ============================================================================

@dataclass
class OpportunityResult:
    """Category, display fields and recommendation for one money page."""
    category: OpportunityCategory
    label: str
    color: str
    recommendation: str


def _ctr_below_band_target(position: float, ctr: float) -> bool:
    if position <= 6:
        return ctr < TARGET_CTR_TOP
    if position <= 10:
        return ctr < TARGET_CTR_MID
    if position <= HIGH_OPP_MAX_POS:
        return ctr < TARGET_CTR_LOW
    return False


def classify_opportunity(
    metrics: Dict[str, Any],
    has_schema: Optional[bool] = None,
    schema_types: Sequence[Any] = (),
) -> OpportunityResult:
    """
    Assign an opportunity category to one money page.

    Args:
        metrics: {"ctr", "avg_position", "impressions"}; missing position
            counts as 99, missing ctr/impressions as 0
        has_schema: Schema presence (None when unknown)
        schema_types: Schema types detected on the page

    Returns:
        OpportunityResult
    """
    position = metrics.get("avg_position") or metrics.get("avgPosition") or UNKNOWN_POSITION
    ctr = metrics.get("ctr") or 0.0
    impressions = int(metrics.get("impressions") or 0)

    present = set(schema_type_names(schema_types))
    missing = [t for t in DESIRED_SCHEMA_TYPES if t.lower() not in present]
    all_missing = has_schema is False or len(missing) == len(DESIRED_SCHEMA_TYPES)

    if (
        HIGH_OPP_MIN_POS <= position <= HIGH_OPP_MAX_POS
        and impressions >= MIN_IMPRESSIONS
        and _ctr_below_band_target(position, ctr)
    ):
        if all_missing:
            schema_note = " Add Product/Event/FAQ schema to improve rich result eligibility. "
        elif missing:
            schema_note = f" Add {'/'.join(missing)} schema to improve rich result eligibility. "
        else:
            schema_note = ""
        category = OpportunityCategory.HIGH_OPPORTUNITY
        recommendation = (
            f"Good visibility (avg position {position:.1f}) and "
            f"{impressions:,} impressions, but low CTR ({ctr * 100:.1f}%). "
            f'Prioritise title/meta improvements, "best" phrasing for this offer, '
            f"{schema_note}"
            f"and adding FAQs that address objections for this money page."
        )
    elif position <= MAINTAIN_MAX_POS and ctr >= TARGET_CTR_MID and impressions >= MIN_IMPRESSIONS:
        category = OpportunityCategory.MAINTAIN
        recommendation = (
            f"Strong performer with avg position {position:.1f} and "
            f"CTR {ctr * 100:.1f}%. Maintain current messaging and "
            f"internal links; focus optimisation efforts on weaker money pages first."
        )
    else:
        if all_missing:
            schema_recommendation = "ensure Product/Event/FAQ schema is present, and "
        elif missing:
            schema_recommendation = f"add {'/'.join(missing)} schema, and "
        else:
            schema_recommendation = ""
        category = OpportunityCategory.VISIBILITY_FIX
        recommendation = (
            f"Limited visibility (avg position {position:.1f} "
            f"and {impressions:,} impressions). Strengthen internal links from high-traffic "
            f"educational posts, {schema_recommendation}"
            f'consider a clearer "best [topic]" section to signal value to searchers and AI.'
        )

    return OpportunityResult(
        category=category,
        label=category.label,
        color=category.color,
        recommendation=recommendation,
    )


# ============================================================================
# MONEY PAGES TABLE & OVERVIEW
# ============================================================================

@dataclass
class SiteAggregate:
    """Whole-site totals from the page rows."""
    total_clicks: int = 0
    total_impressions: int = 0
    avg_ctr: float = 0.0
    avg_position: Optional[float] = None


def compute_site_aggregate(pages: Iterable[Any]) -> SiteAggregate:
    """
    Site totals over page rows.

    Average position is weighted by all impressions (pages without a
    position dilute it), matching how the overview card has always read.
    """
    total_clicks = 0
    total_impressions = 0
    weighted = 0.0
    for row in pages:
        page = as_page_row(row)
        total_clicks += page.clicks
        total_impressions += page.impressions
        if page.impressions > 0 and page.avg_position:
            weighted += page.avg_position * page.impressions
    return SiteAggregate(
        total_clicks=total_clicks,
        total_impressions=total_impressions,
        avg_ctr=safe_ratio(total_clicks, total_impressions),
        avg_position=weighted / total_impressions if total_impressions > 0 else None,
    )


@dataclass
class MoneyPageRow:
    """One row of the money-pages table."""
    url: str
    title: Optional[str]
    meta_description: Optional[str]
    clicks: int
    impressions: int
    ctr: float
    avg_position: Optional[float]
    category: OpportunityCategory
    category_label: str
    category_color: str
    recommendation: str
    schema_types: List[Any]
    sub_segment: MoneySubSegment


@dataclass
class Bucket:
    count: int = 0
    impressions: int = 0
    clicks: int = 0

    def add(self, row: MoneyPageRow) -> None:
        self.count += 1
        self.impressions += row.impressions
        self.clicks += row.clicks


@dataclass
class MoneyPagesOverview:
    money_clicks: int = 0
    money_impressions: int = 0
    money_ctr: float = 0.0
    money_avg_position: Optional[float] = None
    money_coverage_count: int = 0
    site_ctr: float = 0.0
    site_avg_position: Optional[float] = None
    site_total_clicks: int = 0
    site_total_impressions: int = 0


@dataclass
class MoneyPagesMetrics:
    """Overview card, sorted rows and category / sub-segment buckets."""
    overview: MoneyPagesOverview
    rows: List[MoneyPageRow] = field(default_factory=list)
    summary_by_category: Dict[str, Bucket] = field(default_factory=dict)
    summary_by_sub_segment: Dict[str, Bucket] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _build_money_row(
    page: PageRow,
    metadata: Dict[str, Dict[str, Any]],
    schema: SchemaLookup,
) -> Optional[MoneyPageRow]:
    if not page.url or classify_page_segment(page.url) is not PageSegment.MONEY:
        return None

    ctr = safe_ratio(page.clicks, page.impressions)
    meta = metadata.get(page.url) or {}
    schema_types = schema.types(page.url)
    opportunity = classify_opportunity(
        {"ctr": ctr, "avg_position": page.avg_position, "impressions": page.impressions},
        has_schema=schema.presence(page.url),
        schema_types=schema_types,
    )

    return MoneyPageRow(
        url=page.url,
        title=meta.get("title") or page.title,
        meta_description=meta.get("metaDescription") or meta.get("meta_description") or page.meta_description,
        clicks=page.clicks,
        impressions=page.impressions,
        ctr=ctr,
        avg_position=page.avg_position,
        category=opportunity.category,
        category_label=opportunity.label,
        category_color=opportunity.color,
        recommendation=opportunity.recommendation,
        schema_types=schema_types,
        sub_segment=classify_money_sub_segment(page.url),
    )


def compute_money_pages_metrics(
    pages: Iterable[Any],
    site_aggregate: Optional[SiteAggregate] = None,
    page_metadata: Optional[Dict[str, Dict[str, Any]]] = None,
    schema_audit: Optional[Dict[str, Any]] = None,
) -> MoneyPagesMetrics:
    """
    Build the money-pages overview and table from page rows.

    Non-money pages are ignored. A row that cannot be read is logged and
    skipped. Rows are ordered HIGH_OPPORTUNITY, VISIBILITY_FIX, MAINTAIN,
    then by impressions descending.
    """
    site = site_aggregate or SiteAggregate()
    metadata = page_metadata or {}
    schema = SchemaLookup.from_audit(schema_audit)

    by_category = {c.value: Bucket() for c in OpportunityCategory}
    by_sub_segment = {s.value: Bucket() for s in MoneySubSegment}

    rows: List[MoneyPageRow] = []
    for raw in pages or []:
        try:
            row = _build_money_row(as_page_row(raw), metadata, schema)
        except ROW_ERRORS as e:
            logger.warning(f"Skipping unreadable page row {raw!r}: {e}")
            continue
        if row is None:
            continue
        by_category[row.category.value].add(row)
        by_sub_segment[row.sub_segment.value].add(row)
        rows.append(row)

    active = [r for r in rows if r.impressions > 0]
    money_clicks = sum(r.clicks for r in active)
    money_impressions = sum(r.impressions for r in active)
    weighted = sum((r.avg_position or 0) * r.impressions for r in active)

    overview = MoneyPagesOverview(
        money_clicks=money_clicks,
        money_impressions=money_impressions,
        money_ctr=safe_ratio(money_clicks, money_impressions),
        money_avg_position=weighted / money_impressions if money_impressions > 0 else None,
        money_coverage_count=len({r.url for r in active}),
        site_ctr=site.avg_ctr,
        site_avg_position=site.avg_position,
        site_total_clicks=site.total_clicks,
        site_total_impressions=site.total_impressions,
    )

    rows.sort(key=lambda r: (CATEGORY_ORDER[r.category], -r.impressions))

    return MoneyPagesMetrics(
        overview=overview,
        rows=rows,
        summary_by_category=by_category,
        summary_by_sub_segment=by_sub_segment,
    )


# ============================================================================
# PRIORITY GRID
# ============================================================================

@dataclass
class MoneyPageMetric:
    """Impact / difficulty / priority triage for one money page."""
    url: str
    title: str
    sub_segment: MoneySubSegment
    clicks: int
    impressions: int
    ctr: float
    avg_position: float
    lost_clicks: float = 0.0
    impact_level: Level = Level.LOW
    difficulty_level: Level = Level.MEDIUM
    priority_level: Level = Level.LOW

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def key_schema_types_by_url(schema_audit: Optional[Dict[str, Any]]) -> Dict[str, List[Any]]:
    """
    Schema types per exact page URL for the key-schema check.

    Reads whatever pages the audit carries, whatever its status.
    """
    pages = ((schema_audit or {}).get("data") or {}).get("pages") or []
    types: Dict[str, List[Any]] = {}
    for page in pages:
        url = page.get("url")
        if url and url not in types:
            types[url] = list(page.get("schemaTypes") or [])
    return types


def has_key_schema(sub_segment: MoneySubSegment, schema_types: Iterable[Any]) -> bool:
    """Whether a page carries the schema expected for its sub-segment."""
    expected = KEY_SCHEMA_BY_SUB_SEGMENT.get(sub_segment, frozenset())
    return any(name in expected for name in schema_type_names(schema_types))


def compute_difficulty_level(
    avg_position: Optional[float],
    sub_segment: MoneySubSegment,
    key_schema_present: bool,
) -> Level:
    """
    LOW for (0, 5], MEDIUM up to 10, else HIGH.

    Event and product pages without their key schema go up one band.
    """
    pos = avg_position or 0
    if 0 < pos <= 5:
        level = Level.LOW
    elif pos <= 10:
        level = Level.MEDIUM
    else:
        level = Level.HIGH

    if not key_schema_present and sub_segment in (MoneySubSegment.EVENT, MoneySubSegment.PRODUCT):
        if level is Level.LOW:
            level = Level.MEDIUM
        elif level is Level.MEDIUM:
            level = Level.HIGH
    return level


def assign_impact_levels(pages: List[MoneyPageMetric]) -> None:
    """Set lost clicks and batch-relative impact bands in place."""
    max_lost = 0.0
    for page in pages:
        gap = max(0.0, expected_ctr_for_position(page.avg_position) - (page.ctr or 0))
        page.lost_clicks = (page.impressions or 0) * gap
        max_lost = max(max_lost, page.lost_clicks)

    if max_lost <= 0:
        for page in pages:
            page.impact_level = Level.LOW
        return

    for page in pages:
        if page.lost_clicks >= HIGH_IMPACT_SHARE * max_lost:
            page.impact_level = Level.HIGH
        elif page.lost_clicks >= MEDIUM_IMPACT_SHARE * max_lost:
            page.impact_level = Level.MEDIUM
        else:
            page.impact_level = Level.LOW


def derive_priority_level(impact: Level, difficulty: Level) -> Level:
    """
    Priority table:

        impact  | diff LOW/MED | diff HIGH
        HIGH    | HIGH         | MEDIUM
        MEDIUM  | MEDIUM       | LOW
        LOW     | LOW          | LOW
    """
    if impact is Level.HIGH:
        return Level.MEDIUM if difficulty is Level.HIGH else Level.HIGH
    if impact is Level.MEDIUM and difficulty is not Level.HIGH:
        return Level.MEDIUM
    return Level.LOW


def build_money_page_metrics(
    pages: Iterable[Any],
    schema_audit: Optional[Dict[str, Any]] = None,
) -> List[MoneyPageMetric]:
    """
    Triage every money page in ``pages`` into the priority grid.

    Args:
        pages: Page rows (PageRow, GSC rows or flat dicts). CTR given as a
            percentage is converted to a ratio.
        schema_audit: Schema audit result, used for the key-schema check

    Returns:
        List of MoneyPageMetric in input order
    """
    schema_types = key_schema_types_by_url(schema_audit)
    result: List[MoneyPageMetric] = []

    for raw in pages or []:
        try:
            page = as_page_row(raw)
            sub_segment = classify_money_sub_segment(page.url)
            if sub_segment is None:
                continue
            metric = MoneyPageMetric(
                url=page.url,
                title=page.title or page.url,
                sub_segment=sub_segment,
                clicks=page.clicks,
                impressions=page.impressions,
                ctr=normalise_ctr(page.ctr),
                avg_position=page.avg_position or 0,
            )
        except ROW_ERRORS as e:
            logger.warning(f"Skipping unreadable money page row {raw!r}: {e}")
            continue

        metric.difficulty_level = compute_difficulty_level(
            metric.avg_position,
            sub_segment,
            has_key_schema(sub_segment, schema_types.get(metric.url, [])),
        )
        result.append(metric)

    assign_impact_levels(result)
    for metric in result:
        metric.priority_level = derive_priority_level(metric.impact_level, metric.difficulty_level)

    return result


# ============================================================================
# SUMMARIES & BEHAVIOUR
# ============================================================================

@dataclass
class SegmentSummary:
    clicks: int = 0
    impressions: int = 0
    ctr: float = 0.0
    avg_position: float = 0.0
    behaviour_score: float = 0.0


def build_money_segment_summary(
    money_pages: Sequence[MoneyPageMetric],
    behaviour_scores: Optional[Dict[str, float]] = None,
) -> Dict[str, SegmentSummary]:
    """
    Totals for all money pages and each sub-segment.

    Average position here is the plain mean over pages.
    """
    scores = behaviour_scores or {}
    groups = {
        "all_money": list(money_pages),
        "landing_pages": [p for p in money_pages if p.sub_segment is MoneySubSegment.LANDING],
        "event_pages": [p for p in money_pages if p.sub_segment is MoneySubSegment.EVENT],
        "product_pages": [p for p in money_pages if p.sub_segment is MoneySubSegment.PRODUCT],
    }

    summary = {}
    for key, group in groups.items():
        if not group:
            summary[key] = SegmentSummary()
            continue
        clicks = sum(p.clicks for p in group)
        impressions = sum(p.impressions for p in group)
        summary[key] = SegmentSummary(
            clicks=clicks,
            impressions=impressions,
            ctr=safe_ratio(clicks, impressions),
            avg_position=sum(p.avg_position or 0 for p in group) / len(group),
            behaviour_score=scores.get(key, 0.0),
        )
    return summary


@dataclass
class MoneyPagesBehaviour:
    score: float
    site_ctr: float
    top10_ctr: float
    avg_position: float
    top10_share: float
    clicks: int
    impressions: int


def _page_url(page: Any) -> Optional[str]:
    if isinstance(page, dict):
        return page.get("url") or page.get("page")
    return getattr(page, "url", None)


def _url_key(url: Optional[str]) -> str:
    text = (url or "").strip().lower()
    for prefix in ("https://", "http://"):
        if text.startswith(prefix):
            text = text[len(prefix):]
    return text.rstrip("/")


def compute_money_pages_behaviour(
    query_rows: Iterable[Any],
    money_pages: Iterable[Any],
    use_all_positions: bool = False,
) -> Optional[MoneyPagesBehaviour]:
    """
    Behaviour metrics over query rows that land on money pages.

    Only rows with impressions and a position (<= 20 unless
    ``use_all_positions``) count. Returns None when none qualify.
    """
    money_keys = {_url_key(_page_url(p)) for p in money_pages or []}
    if not money_keys:
        return None

    selected = []
    for raw in query_rows or []:
        row = as_query_row(raw)
        if _url_key(row.page) not in money_keys:
            continue
        if not row.impressions or not row.avg_position:
            continue
        if not use_all_positions and row.avg_position > 20:
            continue
        selected.append(row)

    impressions = sum(r.impressions for r in selected)
    if not impressions:
        return None

    clicks = sum(r.clicks for r in selected)
    top10 = [r for r in selected if r.avg_position <= 10]
    top10_impressions = sum(r.impressions for r in top10)

    return MoneyPagesBehaviour(
        score=compute_behaviour_score(selected),
        site_ctr=clicks / impressions,
        top10_ctr=safe_ratio(sum(r.clicks for r in top10), top10_impressions),
        avg_position=weighted_average_position((r.avg_position, r.impressions) for r in selected),
        top10_share=top10_impressions / impressions,
        clicks=clicks,
        impressions=impressions,
    )


@dataclass
class MoneyPagesSummary:
    count: int
    impressions: int
    clicks: int
    ctr: float
    avg_position: float
    share_of_impressions: Optional[float]
    share_of_clicks: Optional[float]
    behaviour_score: Optional[float]


def build_money_pages_summary(
    metrics: MoneyPagesMetrics,
    behaviour: Optional[MoneyPagesBehaviour] = None,
) -> Optional[MoneyPagesSummary]:
    """Headline totals and site share for the money-pages card; None when empty."""
    if not metrics or not metrics.rows:
        return None

    impressions = sum(r.impressions for r in metrics.rows)
    if not impressions:
        return None
    clicks = sum(r.clicks for r in metrics.rows)
    weighted = sum((r.avg_position or 0) * r.impressions for r in metrics.rows)

    site_impressions = metrics.overview.site_total_impressions
    site_clicks = metrics.overview.site_total_clicks

    return MoneyPagesSummary(
        count=len(metrics.rows),
        impressions=impressions,
        clicks=clicks,
        ctr=clicks / impressions,
        avg_position=weighted / impressions,
        share_of_impressions=impressions / site_impressions if site_impressions > 0 else None,
        share_of_clicks=clicks / site_clicks if site_clicks > 0 else None,
        behaviour_score=behaviour.score if behaviour else None,
    )

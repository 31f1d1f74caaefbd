"""
Google Search Console Client

Async client for the Search Analytics API:
- OAuth2 access token from a stored refresh token
- Pagination with ``startRow`` while pages come back full
- Retry with exponential backoff on 429/5xx and timeouts
"""

import asyncio
import logging
from datetime import date
from typing import Any, Dict, List, Optional, Union
from urllib.parse import quote

import httpx

from src.models import PageRow, QueryRow, SearchData, normalise_ctr, to_number
from .client import RetryConfig

logger = logging.getLogger(__name__)

TOKEN_URL = "https://oauth2.googleapis.com/token"
API_BASE = "https://www.googleapis.com/webmasters/v3"
DEFAULT_ROW_LIMIT = 25000

DateLike = Union[str, date]


class GSCError(Exception):
    """Search Console or OAuth failure, with the upstream status and body."""
    def __init__(self, message: str, status_code: int = None, response: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.response = response


def _iso(value: DateLike) -> str:
    return value.isoformat() if isinstance(value, date) else str(value)[:10]


def _body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


class GSCClient:
    """
    Search Analytics client.

    Usage:
        async with GSCClient(client_id, client_secret, refresh_token) as gsc:
            rows = await gsc.query("https://www.example.com", "2025-11-01", "2025-11-28", ["page"])
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        row_limit: int = DEFAULT_ROW_LIMIT,
        retry_config: Optional[RetryConfig] = None,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.refresh_token = refresh_token
        self.row_limit = row_limit
        self.retry_config = retry_config or RetryConfig()
        self._access_token: Optional[str] = None
        self._client = httpx.AsyncClient(timeout=httpx.Timeout(timeout), transport=transport)
        self._closed = False

    @classmethod
    def from_settings(cls, settings, **kwargs) -> "GSCClient":
        if not (settings.GSC_CLIENT_ID and settings.GSC_CLIENT_SECRET and settings.GSC_REFRESH_TOKEN):
            raise GSCError("GSC_CLIENT_ID, GSC_CLIENT_SECRET and GSC_REFRESH_TOKEN must be set")
        return cls(
            client_id=settings.GSC_CLIENT_ID,
            client_secret=settings.GSC_CLIENT_SECRET,
            refresh_token=settings.GSC_REFRESH_TOKEN,
            row_limit=settings.GSC_ROW_LIMIT,
            timeout=float(settings.API_TIMEOUT),
            **kwargs,
        )

    async def close(self):
        if not self._closed:
            await self._client.aclose()
            self._closed = True

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    # ========================================================================
    # AUTH
    # ========================================================================

    async def get_access_token(self) -> str:
        """Exchange the refresh token for an access token (cached per client)."""
        if self._access_token:
            return self._access_token

        response = await self._client.post(
            TOKEN_URL,
            data={
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "refresh_token": self.refresh_token,
                "grant_type": "refresh_token",
            },
        )
        if response.status_code != 200:
            raise GSCError(
                f"Failed to get access token: {response.status_code}",
                status_code=response.status_code,
                response=_body(response),
            )

        token = response.json().get("access_token")
        if not token:
            raise GSCError("Token response has no access_token", response=_body(response))
        self._access_token = token
        return token

    # ========================================================================
    # SEARCH ANALYTICS
    # ========================================================================

    async def _post_query(self, site_url: str, body: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{API_BASE}/sites/{quote(site_url, safe='')}/searchAnalytics/query"
        delay = self.retry_config.initial_delay
        last_error: Optional[GSCError] = None

        for attempt in range(self.retry_config.max_retries + 1):
            token = await self.get_access_token()
            try:
                response = await self._client.post(
                    url, json=body, headers={"Authorization": f"Bearer {token}"}
                )
            except httpx.HTTPError as e:
                last_error = GSCError(f"HTTP error: {e}")
            else:
                if response.status_code == 200:
                    return response.json()
                last_error = GSCError(
                    f"Search Analytics query failed: {response.status_code}",
                    status_code=response.status_code,
                    response=_body(response),
                )
                if response.status_code == 401:
                    self._access_token = None
                elif response.status_code not in self.retry_config.retryable_status_codes:
                    raise last_error

            if attempt < self.retry_config.max_retries:
                logger.warning(
                    f"GSC request failed (attempt {attempt + 1}/{self.retry_config.max_retries + 1}): "
                    f"{last_error}. Retrying in {delay}s..."
                )
                await asyncio.sleep(delay)
                delay = min(delay * self.retry_config.exponential_base, self.retry_config.max_delay)

        raise last_error

    async def query(
        self,
        site_url: str,
        start_date: DateLike,
        end_date: DateLike,
        dimensions: Optional[List[str]] = None,
        row_limit: Optional[int] = None,
        dimension_filter_groups: Optional[List[Dict[str, Any]]] = None,
        max_rows: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        Rows for a query, following ``startRow`` pagination.

        Keeps requesting while a page comes back full. With ``max_rows``
        set, stops as soon as that many rows have been collected.
        """
        limit = row_limit or self.row_limit
        rows: List[Dict[str, Any]] = []
        start_row = 0

        while True:
            page_limit = limit if max_rows is None else min(limit, max_rows - len(rows))
            body: Dict[str, Any] = {
                "startDate": _iso(start_date),
                "endDate": _iso(end_date),
                "dimensions": list(dimensions or []),
                "rowLimit": page_limit,
                "startRow": start_row,
            }
            if dimension_filter_groups:
                body["dimensionFilterGroups"] = dimension_filter_groups

            page = (await self._post_query(site_url, body)).get("rows") or []
            rows.extend(page)
            if len(page) < page_limit:
                break
            if max_rows is not None and len(rows) >= max_rows:
                rows = rows[:max_rows]
                break
            start_row += page_limit

        logger.debug(f"GSC {dimensions or 'totals'} for {site_url}: {len(rows)} rows")
        return rows


# ============================================================================
# CONVENIENCE FETCHERS
# ============================================================================

async def fetch_page_rows(
    client: GSCClient, site_url: str, start_date: DateLike, end_date: DateLike,
) -> List[PageRow]:
    """Every page with its aggregated metrics."""
    rows = await client.query(site_url, start_date, end_date, ["page"])
    return [PageRow.from_gsc_row(r) for r in rows]


async def fetch_query_page_rows(
    client: GSCClient, site_url: str, start_date: DateLike, end_date: DateLike,
) -> List[QueryRow]:
    """Query × page rows."""
    rows = await client.query(site_url, start_date, end_date, ["query", "page"])
    return [QueryRow.from_gsc_row(r) for r in rows]


async def fetch_daily_timeseries(
    client: GSCClient, site_url: str, start_date: DateLike, end_date: DateLike,
) -> List[Dict[str, Any]]:
    """Site totals per day: ``{date, clicks, impressions, ctr, position}``."""
    rows = await client.query(site_url, start_date, end_date, ["date"])
    series = []
    for row in rows:
        keys = row.get("keys") or []
        if not keys:
            continue
        clicks = to_number(row.get("clicks"))
        impressions = to_number(row.get("impressions"))
        series.append({
            "date": str(keys[0])[:10],
            "clicks": int(clicks),
            "impressions": int(impressions),
            "ctr": normalise_ctr(row.get("ctr"), clicks, impressions),
            "position": to_number(row.get("position")) or None,
        })
    return sorted(series, key=lambda r: r["date"])


async def build_search_data(
    client: GSCClient,
    site_url: str,
    start_date: DateLike,
    end_date: DateLike,
    top_query_limit: int = 100,
) -> SearchData:
    """
    Site-level search inputs: totals, top queries and query × page rows.
    """
    totals = await client.query(site_url, start_date, end_date, [], max_rows=1)
    top_queries = await client.query(site_url, start_date, end_date, ["query"], max_rows=top_query_limit)
    query_pages = await fetch_query_page_rows(client, site_url, start_date, end_date)

    total = totals[0] if totals else {}
    clicks = int(to_number(total.get("clicks")))
    impressions = int(to_number(total.get("impressions")))

    logger.info(
        f"Search data for {site_url}: {clicks} clicks, {impressions} impressions, "
        f"{len(query_pages)} query-page rows"
    )
    return SearchData(
        average_position=to_number(total.get("position")) or None,
        ctr=normalise_ctr(total.get("ctr"), clicks, impressions),
        total_clicks=clicks,
        total_impressions=impressions,
        top_queries=[QueryRow.from_gsc_row(r) for r in top_queries],
        query_pages=query_pages,
    )

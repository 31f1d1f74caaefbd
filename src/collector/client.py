"""
DataForSEO API Client

Async HTTP client with:
- Connection pooling
- Automatic retry with exponential backoff
- Explicit parsing of the result shapes DataForSEO returns
- Request/response logging
"""

import asyncio
import httpx
import base64
import logging
from enum import Enum
from typing import Any, Dict, List, Optional
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""
    max_retries: int = 3
    initial_delay: float = 1.0
    max_delay: float = 10.0
    exponential_base: float = 2.0
    retryable_status_codes: tuple = (429, 500, 502, 503, 504)


class DataForSEOError(Exception):
    """Custom exception for DataForSEO API errors."""
    def __init__(self, message: str, status_code: int = None, response: dict = None):
        super().__init__(message)
        self.status_code = status_code
        self.response = response


class UnrecognizedResponseShape(DataForSEOError):
    """A DataForSEO payload matched none of the known result layouts."""


# ============================================================================
# RESULT SHAPES
# ============================================================================

class ResultShape(str, Enum):
    """Layouts DataForSEO uses for result items."""
    RESULT_LIST = "result[].items"      # task.result is a list of result objects
    RESULT_OBJECT = "result.items"      # task.result is a single result object
    BARE_ITEM = "result"                # task.result is itself an item
    EMPTY = "empty"                     # no result at all


def detect_task_shape(task: Dict[str, Any]) -> ResultShape:
    """Classify the layout of one task's ``result`` field."""
    if not isinstance(task, dict):
        raise UnrecognizedResponseShape(f"Task is not an object: {type(task).__name__}")

    result = task.get("result")
    if result is None or result == []:
        return ResultShape.EMPTY
    if isinstance(result, list):
        return ResultShape.RESULT_LIST
    if isinstance(result, dict):
        if "items" in result:
            return ResultShape.RESULT_OBJECT
        if "type" in result:
            return ResultShape.BARE_ITEM
    raise UnrecognizedResponseShape(
        f"Unrecognized task result of type {type(result).__name__}",
        response=task,
    )


def _entry_items(entry: Any) -> List[Dict[str, Any]]:
    if not isinstance(entry, dict):
        raise UnrecognizedResponseShape(f"Result entry is not an object: {entry!r}")
    items = entry.get("items")
    if isinstance(items, list):
        return [i for i in items if isinstance(i, dict)]
    if isinstance(items, dict):
        return [items]
    if items is None and "type" in entry:
        return [entry]
    if items is None:
        return []
    raise UnrecognizedResponseShape(f"Unrecognized items field of type {type(items).__name__}")


def parse_task_items(task: Dict[str, Any]) -> List[Dict[str, Any]]:
    """All result items of one task, flattened across result entries."""
    shape = detect_task_shape(task)
    result = task.get("result")

    if shape is ResultShape.EMPTY:
        return []
    if shape is ResultShape.RESULT_LIST:
        items: List[Dict[str, Any]] = []
        for entry in result:
            items.extend(_entry_items(entry))
        return items
    if shape is ResultShape.RESULT_OBJECT:
        return _entry_items(result)
    return [result]


def parse_result_items(response: Dict[str, Any]) -> List[Dict[str, Any]]:
    """
    Result items of the first task in a response.

    Accepts ``tasks[0].result[0].items``, ``tasks[0].result.items`` and a
    top-level ``result[0].items``. An empty result yields ``[]``.

    Raises:
        UnrecognizedResponseShape: For any other layout
    """
    if not isinstance(response, dict):
        raise UnrecognizedResponseShape(f"Response is not an object: {type(response).__name__}")

    tasks = response.get("tasks")
    if isinstance(tasks, list):
        return parse_task_items(tasks[0]) if tasks else []
    if "result" in response:
        return parse_task_items(response)
    raise UnrecognizedResponseShape("Response has neither tasks nor result", response=response)


def parse_first_result(response: Dict[str, Any]) -> Dict[str, Any]:
    """The first result object of the first task (``{}`` when empty)."""
    tasks = response.get("tasks")
    task = tasks[0] if isinstance(tasks, list) and tasks else response
    shape = detect_task_shape(task)
    if shape is ResultShape.EMPTY:
        return {}
    if shape is ResultShape.RESULT_LIST:
        first = task["result"][0]
        if not isinstance(first, dict):
            raise UnrecognizedResponseShape(f"Result entry is not an object: {first!r}")
        return first
    return task["result"]


# ============================================================================
# CLIENT
# ============================================================================

class DataForSEOClient:
    """
    Async client for DataForSEO API.

    Usage:
        async with DataForSEOClient(login="your_login", password="your_password") as client:
            result = await client.post("serp/google/organic/live/advanced", [{
                "keyword": "photography workshops",
                "location_name": "United Kingdom",
                "language_code": "en",
            }])
    """

    BASE_URL = "https://api.dataforseo.com/v3"

    def __init__(
        self,
        login: str,
        password: str,
        retry_config: Optional[RetryConfig] = None,
        max_connections: int = 10,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize DataForSEO client.

        Args:
            login: DataForSEO login email
            password: DataForSEO API password
            retry_config: Retry configuration (optional)
            max_connections: Maximum concurrent connections
            timeout: Request timeout in seconds
            transport: Alternative httpx transport (tests)
        """
        self.login = login
        self.password = password
        self.retry_config = retry_config or RetryConfig()

        credentials = f"{login}:{password}"
        auth_token = base64.b64encode(credentials.encode()).decode()

        self._client = httpx.AsyncClient(
            base_url=self.BASE_URL,
            headers={
                "Authorization": f"Basic {auth_token}",
                "Content-Type": "application/json",
            },
            limits=httpx.Limits(
                max_connections=max_connections,
                max_keepalive_connections=max(1, max_connections // 2),
            ),
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

        self._closed = False

    @classmethod
    def from_settings(cls, settings, **kwargs) -> "DataForSEOClient":
        if not (settings.DATAFORSEO_LOGIN and settings.DATAFORSEO_PASSWORD):
            raise DataForSEOError("DATAFORSEO_LOGIN and DATAFORSEO_PASSWORD must be set")
        return cls(
            login=settings.DATAFORSEO_LOGIN,
            password=settings.DATAFORSEO_PASSWORD,
            timeout=float(settings.API_TIMEOUT),
            **kwargs,
        )

    async def post(
        self,
        endpoint: str,
        data: List[Dict[str, Any]],
        retry: bool = True
    ) -> Dict[str, Any]:
        """
        Make POST request to DataForSEO API.

        Args:
            endpoint: API endpoint path (e.g., "backlinks/summary/live")
            data: Request payload (list of task objects)
            retry: Whether to retry on failure

        Returns:
            API response as dictionary

        Raises:
            DataForSEOError: On API error
        """
        if self._closed:
            raise DataForSEOError("Client is closed")

        url = f"/{endpoint}"

        if retry:
            return await self._request_with_retry(url, data)
        else:
            return await self._make_request(url, data)

    async def _make_request(self, url: str, data: List[Dict]) -> Dict[str, Any]:
        """Make a single HTTP request."""
        logger.debug(f"POST {url}")

        response = await self._client.post(url, json=data)

        if response.status_code != 200:
            try:
                body = response.json() if response.content else None
            except ValueError:
                body = {"text": response.text}
            raise DataForSEOError(
                f"API request failed: {response.status_code}",
                status_code=response.status_code,
                response=body,
            )

        result = response.json()

        if result.get("status_code") != 20000:
            error_msg = result.get("status_message", "Unknown error")
            raise DataForSEOError(
                f"API error: {error_msg}",
                status_code=result.get("status_code"),
                response=result,
            )

        for task in result.get("tasks") or []:
            task_status = task.get("status_code")
            if task_status not in (20000, 20100):
                logger.error(
                    f"DataForSEO task error in {url}: {task.get('status_message', 'Task error')} "
                    f"(status: {task_status})"
                )

        return result

    async def _request_with_retry(self, url: str, data: List[Dict]) -> Dict[str, Any]:
        """Make request with automatic retry on failure."""
        last_exception = None
        delay = self.retry_config.initial_delay

        for attempt in range(self.retry_config.max_retries + 1):
            try:
                return await self._make_request(url, data)

            except DataForSEOError as e:
                last_exception = e

                # Don't retry client errors (4xx except 429)
                if e.status_code and 400 <= e.status_code < 500 and e.status_code != 429:
                    raise

                if attempt < self.retry_config.max_retries:
                    logger.warning(
                        f"Request failed (attempt {attempt + 1}/{self.retry_config.max_retries + 1}): {e}. "
                        f"Retrying in {delay}s..."
                    )

            except httpx.TimeoutException as e:
                last_exception = DataForSEOError(f"Request timed out: {e}")

                if attempt < self.retry_config.max_retries:
                    logger.warning(f"Timeout (attempt {attempt + 1}). Retrying in {delay}s...")

            except httpx.HTTPError as e:
                last_exception = DataForSEOError(f"HTTP error: {e}")

                if attempt < self.retry_config.max_retries:
                    logger.warning(f"HTTP error (attempt {attempt + 1}). Retrying in {delay}s...")

            if attempt < self.retry_config.max_retries:
                await asyncio.sleep(delay)
                delay = min(
                    delay * self.retry_config.exponential_base,
                    self.retry_config.max_delay
                )

        raise last_exception

    async def close(self):
        """Close the HTTP client."""
        if not self._closed:
            await self._client.aclose()
            self._closed = True

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    # ========================================================================
    # SERP & BACKLINK ENDPOINTS
    # ========================================================================

    async def get_organic_serp(
        self,
        keywords: List[str],
        location_name: str = "United Kingdom",
        language_code: str = "en",
        depth: int = 50,
    ) -> List[Dict[str, Any]]:
        """
        Organic SERP (live, advanced) for a batch of keywords.

        Returns:
            One task object per keyword, in request order
        """
        if not keywords:
            return []

        result = await self.post(
            "serp/google/organic/live/advanced",
            [
                {
                    "keyword": keyword,
                    "location_name": location_name,
                    "language_code": language_code,
                    "device": "desktop",
                    "os": "windows",
                    "depth": depth,
                }
                for keyword in keywords
            ],
        )
        return result.get("tasks") or []

    async def get_ai_mode_serp(
        self,
        keyword: str,
        location_name: str = "United Kingdom",
        language_name: str = "English",
    ) -> Dict[str, Any]:
        """Google AI-mode SERP for one keyword (the first task object)."""
        result = await self.post(
            "serp/google/ai_mode/live/advanced",
            [{
                "keyword": keyword,
                "location_name": location_name,
                "language_name": language_name,
                "device": "desktop",
                "os": "windows",
            }],
        )
        tasks = result.get("tasks") or []
        return tasks[0] if tasks else {}

    async def get_backlink_summary(self, domain: str) -> Optional[Dict[str, Any]]:
        """
        Backlink metrics for a domain.

        Uses DataForSEO Backlinks Summary with ``rank_scale="one_hundred"`` so
        the rank is on a 0-100 scale.

        Returns:
            ``{"domain", "rank", "referringDomains", "totalBacklinks",
            "followRatio"}`` or None when the domain has no summary
        """
        domain = (domain or "").strip()
        if not domain:
            return None

        result = await self.post(
            "backlinks/summary/live",
            [{
                "target": domain,
                "backlinks_status_type": "live",
                "include_subdomains": True,
                "exclude_internal_backlinks": True,
                "include_indirect_links": True,
                "internal_list_limit": 10,
                "rank_scale": "one_hundred",
            }],
        )

        summary = parse_first_result(result)
        if not summary:
            logger.warning(f"No backlink summary data for {domain}")
            return None

        total = int(summary.get("backlinks") or 0)
        attributes = summary.get("referring_links_attributes") or {}
        nofollow = int(attributes.get("nofollow") or 0)
        follow_ratio = max(0.0, (total - nofollow) / total) if total > 0 else 0.0

        metrics = {
            "domain": domain,
            "rank": summary.get("rank"),
            "referringDomains": int(summary.get("referring_domains") or 0),
            "totalBacklinks": total,
            "followRatio": follow_ratio,
        }
        logger.info(
            f"Backlink summary for {domain}: rank={metrics['rank']}, "
            f"referring_domains={metrics['referringDomains']}, follow_ratio={follow_ratio:.2f}"
        )
        return metrics

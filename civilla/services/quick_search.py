"""
Quick Search
============

Client-side layer over GET /api/search used by the type-ahead box in the
app header.

- Debounce: a query is committed 250 ms after the last keystroke, and only
  sent when the trimmed text has at least 2 characters. Both come from
  Settings unless passed to QuickSearch.
- Sequencing: every dispatch gets an increasing request id; a response that
  arrives after a newer request was dispatched is dropped, so a slow early
  response can never overwrite a later one.
- Caching: results are kept per (query, case) for 30 seconds.
- Highlighting: snippets mark matches as [[H]]...[[/H]]; parse_highlighted()
  splits them into plain and highlighted runs.

Failures are not retried. fetch_search_results() raises SearchRequestError;
QuickSearch records it in `error` and shows no results.
"""

import asyncio
import logging
import re
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx

from civilla.core.config import get_settings
from civilla.core.errors import SearchRequestError

logger = logging.getLogger(__name__)


SEARCH_PATH = "/api/search"

TYPE_LABELS: Dict[str, str] = {
    "evidence": "Evidence",
    "note": "Note",
    "timeline": "Timeline",
    "communication": "Communication",
    "document": "Document",
    "snippet": "Exhibit Snippet",
    "trialprep": "Trial Prep",
}


# =============================================================================
# RESULTS & HIGHLIGHT MARKUP
# =============================================================================

@dataclass(frozen=True)
class SearchHit:
    """One entry of the search endpoint's `results` array."""
    type: str
    case_id: str
    id: str
    title: str
    snippet: str
    href: str
    case_title: Optional[str] = None

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "SearchHit":
        return cls(
            type=str(data.get("type", "")),
            case_id=str(data.get("caseId", "")),
            id=str(data.get("id", "")),
            title=str(data.get("title", "")),
            snippet=str(data.get("snippet") or ""),
            href=str(data.get("href", "")),
            case_title=data.get("caseTitle"),
        )

    @property
    def type_label(self) -> str:
        return TYPE_LABELS.get(self.type, self.type)


@dataclass(frozen=True)
class TextRun:
    text: str
    highlight: bool = False


_HIGHLIGHT_RE = re.compile(r"\[\[H\]\](.*?)\[\[/H\]\]", re.DOTALL)


def parse_highlighted(snippet: str) -> List[TextRun]:
    """
    Split a snippet into alternating plain / highlighted runs.

        "The [[H]]quick[[/H]] fox" -> "The ", *"quick"*, " fox"

    An opening marker without a closing one is left as literal text in the
    trailing plain run; the parser never raises on malformed markup.
    """
    runs: List[TextRun] = []
    if not snippet:
        return runs

    last = 0
    for match in _HIGHLIGHT_RE.finditer(snippet):
        if match.start() > last:
            runs.append(TextRun(snippet[last:match.start()]))
        runs.append(TextRun(match.group(1), highlight=True))
        last = match.end()
    if last < len(snippet):
        runs.append(TextRun(snippet[last:]))
    return runs


def group_by_type(hits: List[SearchHit]) -> "OrderedDict[str, List[SearchHit]]":
    """Group hits by type, types in order of first appearance."""
    groups: "OrderedDict[str, List[SearchHit]]" = OrderedDict()
    for hit in hits:
        groups.setdefault(hit.type, []).append(hit)
    return groups


# =============================================================================
# TRANSPORT
# =============================================================================

async def fetch_search_results(
    client: httpx.AsyncClient,
    q: str,
    case_id: Optional[str] = None,
) -> List[SearchHit]:
    """
    One GET /api/search call.

    Raises SearchRequestError on transport errors, non-2xx responses or an
    unreadable body.
    """
    params = {"q": q}
    if case_id:
        params["caseId"] = case_id

    try:
        response = await client.get(SEARCH_PATH, params=params)
    except httpx.HTTPError as exc:
        raise SearchRequestError(f"Search failed: {exc}") from exc

    if response.status_code >= 400:
        raise SearchRequestError("Search failed", status_code=response.status_code)

    try:
        payload = response.json()
    except ValueError as exc:
        raise SearchRequestError("Search returned an unreadable response") from exc

    if not isinstance(payload, dict):
        raise SearchRequestError("Search returned an unreadable response")
    items = payload.get("results") or []
    if not isinstance(items, list) or not all(isinstance(item, dict) for item in items):
        raise SearchRequestError("Search returned an unreadable response")

    return [SearchHit.from_json(item) for item in items]


# =============================================================================
# QUICK SEARCH STATE
# =============================================================================

class QuickSearch:
    """
    State behind one quick-search box.

    Usage:
        async with httpx.AsyncClient(base_url=...) as client:
            search = QuickSearch(client, case_id=case_id, navigate=router.go)
            search.set_query("cus")
            search.set_query("custody")
            await search.settle()
            for group, hits in search.grouped_results().items():
                ...
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        case_id: Optional[str] = None,
        navigate: Optional[Callable[[str], Any]] = None,
        debounce_ms: Optional[int] = None,
        min_query_length: Optional[int] = None,
        stale_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        settings = get_settings()
        self.client = client
        self.case_id = case_id
        self.navigate = navigate
        self.debounce_ms = settings.quick_search_debounce_ms if debounce_ms is None else debounce_ms
        self.min_query_length = (
            settings.search_min_query_length if min_query_length is None else min_query_length
        )
        self.stale_seconds = (
            settings.quick_search_stale_seconds if stale_seconds is None else stale_seconds
        )
        self.clock = clock

        self.query = ""
        self.debounced_query = ""
        self.is_open = False
        self.is_loading = False
        self.results: List[SearchHit] = []
        self.error: Optional[SearchRequestError] = None

        self._debounce_task: Optional[asyncio.Task] = None
        self._fetch_tasks: set = set()
        self._latest_request_id = 0
        self._cache: Dict[Tuple[str, Optional[str]], Tuple[float, List[SearchHit]]] = {}

    # ------------------------------------------------------------------
    # Derived view state
    # ------------------------------------------------------------------

    def _long_enough(self, text: str) -> bool:
        return len(text.strip()) >= self.min_query_length

    @property
    def show_dropdown(self) -> bool:
        return self.is_open and self._long_enough(self.debounced_query)

    @property
    def show_case_labels(self) -> bool:
        """Cross-case search shows which case each hit belongs to."""
        return not self.case_id

    @property
    def placeholder(self) -> str:
        return "Search case..." if self.case_id else "Search all cases..."

    def grouped_results(self) -> "OrderedDict[str, List[SearchHit]]":
        return group_by_type(self.results)

    # ------------------------------------------------------------------
    # Input events
    # ------------------------------------------------------------------

    def set_query(self, text: str) -> None:
        """Keystroke: update the live query and restart the debounce timer."""
        self.query = text
        if self._long_enough(text):
            self.is_open = True
        self._cancel_debounce()
        self._debounce_task = asyncio.get_running_loop().create_task(self._debounce(text))

    def focus(self) -> None:
        if self._long_enough(self.query):
            self.is_open = True

    def handle_key(self, key: str) -> None:
        if key == "Escape":
            self.is_open = False

    def handle_outside_click(self) -> None:
        self.is_open = False

    def clear(self) -> None:
        """Clear button: drop the query and close the dropdown."""
        self._cancel_debounce()
        # Responses still in flight belong to the old query
        self._latest_request_id += 1
        self.query = ""
        self.is_loading = False
        self.debounced_query = ""
        self.results = []
        self.error = None
        self.is_open = False

    def select(self, hit: SearchHit) -> Any:
        """Open a result: close, reset the query, navigate to its href."""
        self.clear()
        if self.navigate is not None:
            return self.navigate(hit.href)
        return None

    # ------------------------------------------------------------------
    # Debounce & dispatch
    # ------------------------------------------------------------------

    def _cancel_debounce(self) -> None:
        if self._debounce_task is not None and not self._debounce_task.done():
            self._debounce_task.cancel()
        self._debounce_task = None

    async def _debounce(self, text: str) -> None:
        await asyncio.sleep(self.debounce_ms / 1000)
        self.debounced_query = text
        if not self._long_enough(text):
            self._latest_request_id += 1
            self.results = []
            self.is_loading = False
            self.error = None
            return
        task = asyncio.get_running_loop().create_task(self._dispatch(text))
        self._fetch_tasks.add(task)
        task.add_done_callback(self._fetch_tasks.discard)

    def _cached(self, key: Tuple[str, Optional[str]]) -> Optional[List[SearchHit]]:
        entry = self._cache.get(key)
        if entry is None:
            return None
        stored_at, hits = entry
        if self.clock() - stored_at > self.stale_seconds:
            del self._cache[key]
            return None
        return hits

    def _prune_cache(self) -> None:
        now = self.clock()
        expired = [
            key for key, (stored_at, _) in self._cache.items()
            if now - stored_at > self.stale_seconds
        ]
        for key in expired:
            del self._cache[key]

    async def _dispatch(self, text: str) -> None:
        self._latest_request_id += 1
        request_id = self._latest_request_id
        key = (text, self.case_id)

        cached = self._cached(key)
        if cached is not None:
            self.results = cached
            self.error = None
            self.is_loading = False
            return

        self.is_loading = True
        try:
            hits = await fetch_search_results(self.client, text, self.case_id)
        except SearchRequestError as exc:
            if request_id != self._latest_request_id:
                return
            logger.warning("Quick search failed for %r: %s", text, exc.message)
            self.error = exc
            self.results = []
            self.is_loading = False
            return

        self._prune_cache()
        self._cache[key] = (self.clock(), hits)
        if request_id != self._latest_request_id:
            logger.debug("Dropping stale search response #%d for %r", request_id, text)
            return
        self.results = hits
        self.error = None
        self.is_loading = False

    async def settle(self) -> None:
        """Wait for the pending debounce and any in-flight requests to finish."""
        if self._debounce_task is not None:
            try:
                await self._debounce_task
            except asyncio.CancelledError:
                pass
        if self._fetch_tasks:
            await asyncio.gather(*list(self._fetch_tasks))

    async def aclose(self) -> None:
        """Cancel pending work. Called when the search box is torn down."""
        self._cancel_debounce()
        for task in list(self._fetch_tasks):
            task.cancel()
        if self._fetch_tasks:
            await asyncio.gather(*list(self._fetch_tasks), return_exceptions=True)
        self._fetch_tasks.clear()

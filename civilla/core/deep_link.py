"""
Deep Links
==========

A page URL can point at one entity inside a case module, for example
/app/timeline/<case_id>?eventId=<id>. When the page has loaded its data
the resolver scrolls the matching element into view, highlights it for a
moment, then strips the parameter from the URL so a refresh or a shared
link does not highlight again.

Browser state is reached through two small interfaces so the same logic
runs in the browser shell, in server-side rendering and in tests:

- Location: current href plus in-place history replacement
- Viewport: element lookup by id; elements scroll and toggle CSS classes
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional, Protocol, Set, Union
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from civilla.core.config import get_settings

logger = logging.getLogger(__name__)


HIGHLIGHT_CLASS = "deep-link-highlight"


class DeepLinkType(str, Enum):
    """Kinds of entity a deep link can point at."""
    EVIDENCE_NOTE = "evidence-note"
    TIMELINE_EVENT = "timeline-event"
    DOCUMENT = "document"
    EXHIBIT_SNIPPET = "exhibit-snippet"
    TRIAL_PREP = "trial-prep"


# Query parameter -> entity kind. Iteration order decides which parameter
# wins when a URL carries several.
PARAM_MAP: Dict[str, DeepLinkType] = {
    "noteId": DeepLinkType.EVIDENCE_NOTE,
    "eventId": DeepLinkType.TIMELINE_EVENT,
    "docId": DeepLinkType.DOCUMENT,
    "snippetId": DeepLinkType.EXHIBIT_SNIPPET,
    "tpId": DeepLinkType.TRIAL_PREP,
}


@dataclass(frozen=True)
class DeepLinkParams:
    type: Optional[DeepLinkType] = None
    id: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return self.type is None

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {"type": self.type.value if self.type else None, "id": self.id}


# =============================================================================
# BROWSER INTERFACES
# =============================================================================

class Location(Protocol):
    """The parts of window.location / window.history the resolver needs."""

    @property
    def href(self) -> str: ...

    def replace_state(self, url: str) -> None: ...


class Element(Protocol):
    def scroll_into_view(self, block: str = "center") -> None: ...

    def add_class(self, name: str) -> None: ...

    def remove_class(self, name: str) -> None: ...


class Viewport(Protocol):
    def get_element(self, element_id: str) -> Optional[Element]: ...


class MemoryLocation:
    """
    In-process Location.

    `history` records every URL the location has held; replace_state
    overwrites the newest entry instead of adding one.
    """

    def __init__(self, href: str):
        self.history: List[str] = [href]

    @property
    def href(self) -> str:
        return self.history[-1]

    def replace_state(self, url: str) -> None:
        parts = urlsplit(self.href)
        new = urlsplit(url)
        # Relative URLs ("/path?x=1") keep the current scheme and host
        if not new.scheme:
            url = urlunsplit((parts.scheme, parts.netloc, new.path, new.query, new.fragment))
        self.history[-1] = url

    def push(self, url: str) -> None:
        self.history.append(url)


# =============================================================================
# PARSING
# =============================================================================

def _query_pairs(href: str) -> List[tuple]:
    return parse_qsl(urlsplit(href).query, keep_blank_values=True)


def get_deep_link_param(location: Location, param_name: str) -> Optional[str]:
    """First value of `param_name` in the location's query string, or None."""
    for name, value in _query_pairs(location.href):
        if name == param_name:
            return value
    return None


def parse_deep_link_from_location(location: Location) -> DeepLinkParams:
    """
    Read the deep link carried by the current URL.

    Only the first recognized parameter (in PARAM_MAP order) is honored;
    empty values are ignored. No recognized parameter -> DeepLinkParams(None, None).
    """
    values: Dict[str, str] = {}
    for name, value in _query_pairs(location.href):
        values.setdefault(name, value)

    for param, link_type in PARAM_MAP.items():
        entity_id = values.get(param)
        if entity_id:
            return DeepLinkParams(type=link_type, id=entity_id)

    return DeepLinkParams()


def build_deep_link(path: str, **params: Optional[str]) -> str:
    """
    Compose an href with query parameters, skipping None values.

        build_deep_link("/app/timeline/c1", eventId="e9") -> "/app/timeline/c1?eventId=e9"
    """
    query = urlencode([(k, v) for k, v in params.items() if v is not None])
    return f"{path}?{query}" if query else path


def clear_deep_link_query_params(location: Location) -> bool:
    """
    Remove every deep-link parameter from the URL in place.

    Unrelated parameters and the fragment are kept. Returns True when the
    URL changed; nothing is written when no deep-link parameter is present.
    """
    parts = urlsplit(location.href)
    pairs = parse_qsl(parts.query, keep_blank_values=True)
    kept = [(name, value) for name, value in pairs if name not in PARAM_MAP]
    if len(kept) == len(pairs):
        return False

    query = urlencode(kept)
    url = parts.path + (f"?{query}" if query else "")
    if parts.fragment:
        url += f"#{parts.fragment}"
    location.replace_state(url)
    return True


# =============================================================================
# SCROLL & HIGHLIGHT
# =============================================================================

def scroll_and_highlight(
    viewport: Viewport,
    element_id: str,
    duration_ms: Optional[int] = None,
    schedule: Optional[Callable[[float, Callable[[], None]], object]] = None,
) -> bool:
    """
    Scroll an element to the viewport center and highlight it briefly.

    Returns False when no element has that id; the entity may have been
    deleted or not rendered yet, which is not an error.

    `schedule(delay_seconds, callback)` arranges the highlight removal;
    defaults to loop.call_later on the running loop. `duration_ms` defaults
    to the deep_link_highlight_ms setting.
    """
    if duration_ms is None:
        duration_ms = get_settings().deep_link_highlight_ms
    element = viewport.get_element(element_id)
    if element is None:
        logger.debug("Deep link target #%s not found", element_id)
        return False

    element.scroll_into_view(block="center")
    element.add_class(HIGHLIGHT_CLASS)

    def _unhighlight() -> None:
        element.remove_class(HIGHLIGHT_CLASS)

    if schedule is None:
        asyncio.get_running_loop().call_later(duration_ms / 1000, _unhighlight)
    else:
        schedule(duration_ms / 1000, _unhighlight)
    return True


BeforeScrollHook = Callable[[str], Union[Awaitable[None], None]]


class DeepLinkResolver:
    """
    Runs the deep-link flow for one view.

    Timers are owned by the resolver and cancelled by close(), so nothing
    touches the view after it is torn down.

    Usage:
        resolver = DeepLinkResolver(location, viewport)
        await resolver.activate("eventId", "event-", is_data_loaded=True)
        ...
        resolver.close()
    """

    def __init__(
        self,
        location: Location,
        viewport: Viewport,
        highlight_ms: Optional[int] = None,
        scroll_delay_ms: Optional[int] = None,
    ):
        settings = get_settings()
        self.location = location
        self.viewport = viewport
        self.highlight_ms = settings.deep_link_highlight_ms if highlight_ms is None else highlight_ms
        self.scroll_delay_ms = (
            settings.deep_link_scroll_delay_ms if scroll_delay_ms is None else scroll_delay_ms
        )
        self._handles: Set[asyncio.TimerHandle] = set()
        self._scroll_done: Optional[asyncio.Future] = None
        self._closed = False

    def _schedule(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        handle: Optional[asyncio.TimerHandle] = None

        def _run() -> None:
            self._handles.discard(handle)
            callback()

        handle = asyncio.get_running_loop().call_later(delay, _run)
        self._handles.add(handle)
        return handle

    async def activate(
        self,
        param_name: str,
        element_id_prefix: str,
        is_data_loaded: bool,
        on_before_scroll: Optional[BeforeScrollHook] = None,
    ) -> bool:
        """
        Start the scroll for `param_name` if the URL carries it.

        Does nothing (returns False) when the parameter is absent, when the
        page data has not loaded yet (call again once it has), or after
        close(). Returns True once the scroll has been scheduled; await
        `wait()` for its outcome.
        """
        if self._closed:
            return False
        entity_id = get_deep_link_param(self.location, param_name)
        if not entity_id or not is_data_loaded:
            return False

        if on_before_scroll is not None:
            result = on_before_scroll(entity_id)
            if inspect.isawaitable(result):
                await result
            if self._closed:
                return False

        loop = asyncio.get_running_loop()
        done: asyncio.Future = loop.create_future()
        self._scroll_done = done
        element_id = f"{element_id_prefix}{entity_id}"

        def _attempt() -> None:
            found = scroll_and_highlight(
                self.viewport,
                element_id,
                duration_ms=self.highlight_ms,
                schedule=self._schedule,
            )
            if found:
                clear_deep_link_query_params(self.location)
            if not done.done():
                done.set_result(found)

        self._schedule(self.scroll_delay_ms / 1000, _attempt)
        return True

    async def wait(self) -> bool:
        """Outcome of the last scheduled scroll: True if the element was found."""
        if self._scroll_done is None or self._scroll_done.cancelled():
            return False
        return await self._scroll_done

    @property
    def pending_timers(self) -> int:
        return len(self._handles)

    def close(self) -> None:
        """Cancel pending scroll and highlight timers. Called on view teardown."""
        self._closed = True
        for handle in self._handles:
            handle.cancel()
        self._handles.clear()
        # A scroll that never ran did not find its element
        if self._scroll_done is not None and not self._scroll_done.done():
            self._scroll_done.set_result(False)


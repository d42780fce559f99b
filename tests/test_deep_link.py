"""
Tests for deep-link parsing, URL cleanup and the scroll/highlight resolver.
"""
import asyncio

import pytest

from civilla.core.config import Settings
from civilla.core.deep_link import (
    HIGHLIGHT_CLASS,
    DeepLinkParams,
    DeepLinkResolver,
    DeepLinkType,
    MemoryLocation,
    build_deep_link,
    clear_deep_link_query_params,
    get_deep_link_param,
    parse_deep_link_from_location,
    scroll_and_highlight,
)


class FakeElement:
    def __init__(self):
        self.classes = set()
        self.scrolled = []

    def scroll_into_view(self, block="center"):
        self.scrolled.append(block)

    def add_class(self, name):
        self.classes.add(name)

    def remove_class(self, name):
        self.classes.discard(name)


class FakeViewport:
    def __init__(self, elements=None):
        self.elements = dict(elements or {})
        self.lookups = []

    def get_element(self, element_id):
        self.lookups.append(element_id)
        return self.elements.get(element_id)


BASE = "https://app.civilla.test"


# ============================================================================
# PARSING
# ============================================================================

class TestParseDeepLink:

    def test_no_params(self):
        params = parse_deep_link_from_location(MemoryLocation(f"{BASE}/app/timeline/c1"))
        assert params == DeepLinkParams()
        assert params.is_empty

    @pytest.mark.parametrize(
        "query,expected_type",
        [
            ("noteId=n1", DeepLinkType.EVIDENCE_NOTE),
            ("eventId=n1", DeepLinkType.TIMELINE_EVENT),
            ("docId=n1", DeepLinkType.DOCUMENT),
            ("snippetId=n1", DeepLinkType.EXHIBIT_SNIPPET),
            ("tpId=n1", DeepLinkType.TRIAL_PREP),
        ],
    )
    def test_each_param(self, query, expected_type):
        params = parse_deep_link_from_location(MemoryLocation(f"{BASE}/app/x/c1?{query}"))
        assert params.type == expected_type
        assert params.id == "n1"

    def test_first_param_in_fixed_order_wins(self):
        location = MemoryLocation(f"{BASE}/app/x/c1?tpId=t1&docId=d1&eventId=e1")
        assert parse_deep_link_from_location(location) == DeepLinkParams(DeepLinkType.TIMELINE_EVENT, "e1")

    def test_empty_value_is_ignored(self):
        location = MemoryLocation(f"{BASE}/app/x/c1?noteId=&docId=d7")
        assert parse_deep_link_from_location(location) == DeepLinkParams(DeepLinkType.DOCUMENT, "d7")

    def test_unrelated_params_are_ignored(self):
        location = MemoryLocation(f"{BASE}/app/x/c1?fileId=f1&tab=notes")
        assert parse_deep_link_from_location(location).is_empty

    def test_get_param(self):
        location = MemoryLocation(f"{BASE}/app/x/c1?eventId=e1&tab=2")
        assert get_deep_link_param(location, "eventId") == "e1"
        assert get_deep_link_param(location, "docId") is None

    def test_to_dict(self):
        assert DeepLinkParams(DeepLinkType.DOCUMENT, "d1").to_dict() == {"type": "document", "id": "d1"}
        assert DeepLinkParams().to_dict() == {"type": None, "id": None}


class TestBuildDeepLink:

    def test_skips_none(self):
        assert build_deep_link("/app/evidence/c1", noteId="n1", fileId=None) == "/app/evidence/c1?noteId=n1"

    def test_no_params(self):
        assert build_deep_link("/app/evidence/c1") == "/app/evidence/c1"


# ============================================================================
# URL CLEANUP
# ============================================================================

class TestClearDeepLinkParams:

    def test_removes_all_deep_link_params_and_keeps_others(self):
        location = MemoryLocation(f"{BASE}/app/timeline/c1?eventId=e1&tab=notes&docId=d1#top")
        assert clear_deep_link_query_params(location) is True
        assert location.href == f"{BASE}/app/timeline/c1?tab=notes#top"

    def test_replaces_instead_of_pushing(self):
        location = MemoryLocation(f"{BASE}/app/cases")
        location.push(f"{BASE}/app/timeline/c1?eventId=e1")
        clear_deep_link_query_params(location)
        assert location.history == [f"{BASE}/app/cases", f"{BASE}/app/timeline/c1"]

    def test_noop_without_params(self):
        location = MemoryLocation(f"{BASE}/app/timeline/c1?tab=notes")
        assert clear_deep_link_query_params(location) is False
        assert location.href == f"{BASE}/app/timeline/c1?tab=notes"


# ============================================================================
# SCROLL & HIGHLIGHT
# ============================================================================

class TestScrollAndHighlight:

    def test_missing_element(self):
        assert scroll_and_highlight(FakeViewport(), "event-x", schedule=lambda d, cb: None) is False

    def test_highlights_and_schedules_removal(self):
        element = FakeElement()
        scheduled = []
        found = scroll_and_highlight(
            FakeViewport({"event-1": element}),
            "event-1",
            duration_ms=2000,
            schedule=lambda delay, cb: scheduled.append((delay, cb)),
        )
        assert found is True
        assert element.scrolled == ["center"]
        assert HIGHLIGHT_CLASS in element.classes

        delay, callback = scheduled[0]
        assert delay == 2.0
        callback()
        assert HIGHLIGHT_CLASS not in element.classes


class TestDeepLinkResolver:

    @pytest.mark.asyncio
    async def test_scrolls_highlights_and_clears_url(self):
        element = FakeElement()
        location = MemoryLocation(f"{BASE}/app/timeline/c1?eventId=e1&tab=2")
        resolver = DeepLinkResolver(
            location, FakeViewport({"event-e1": element}), highlight_ms=30, scroll_delay_ms=5
        )

        assert await resolver.activate("eventId", "event-", is_data_loaded=True) is True
        assert await resolver.wait() is True
        assert HIGHLIGHT_CLASS in element.classes
        assert location.href == f"{BASE}/app/timeline/c1?tab=2"

        await asyncio.sleep(0.06)
        assert HIGHLIGHT_CLASS not in element.classes
        assert resolver.pending_timers == 0

    @pytest.mark.asyncio
    async def test_waits_for_data(self):
        viewport = FakeViewport({"event-e1": FakeElement()})
        location = MemoryLocation(f"{BASE}/app/timeline/c1?eventId=e1")
        resolver = DeepLinkResolver(location, viewport, scroll_delay_ms=5)

        assert await resolver.activate("eventId", "event-", is_data_loaded=False) is False
        assert resolver.pending_timers == 0
        assert viewport.lookups == []

        assert await resolver.activate("eventId", "event-", is_data_loaded=True) is True
        assert await resolver.wait() is True
        resolver.close()

    @pytest.mark.asyncio
    async def test_absent_param_does_nothing(self):
        location = MemoryLocation(f"{BASE}/app/timeline/c1")
        resolver = DeepLinkResolver(location, FakeViewport(), scroll_delay_ms=5)
        assert await resolver.activate("eventId", "event-", is_data_loaded=True) is False
        assert await resolver.wait() is False

    @pytest.mark.asyncio
    async def test_missing_element_keeps_url(self):
        location = MemoryLocation(f"{BASE}/app/timeline/c1?eventId=gone")
        resolver = DeepLinkResolver(location, FakeViewport(), scroll_delay_ms=5)

        assert await resolver.activate("eventId", "event-", is_data_loaded=True) is True
        assert await resolver.wait() is False
        assert location.href == f"{BASE}/app/timeline/c1?eventId=gone"

    @pytest.mark.asyncio
    async def test_before_scroll_hook_runs_first(self):
        calls = []
        viewport = FakeViewport({"note-n1": FakeElement()})
        location = MemoryLocation(f"{BASE}/app/evidence/c1?noteId=n1")
        resolver = DeepLinkResolver(location, viewport, scroll_delay_ms=5)

        async def open_note_panel(entity_id):
            calls.append(entity_id)
            assert viewport.lookups == []

        await resolver.activate("noteId", "note-", is_data_loaded=True, on_before_scroll=open_note_panel)
        assert await resolver.wait() is True
        assert calls == ["n1"]
        resolver.close()

    @pytest.mark.asyncio
    async def test_close_cancels_pending_timers(self):
        element = FakeElement()
        viewport = FakeViewport({"event-e1": element})
        location = MemoryLocation(f"{BASE}/app/timeline/c1?eventId=e1")
        resolver = DeepLinkResolver(location, viewport, scroll_delay_ms=20)

        await resolver.activate("eventId", "event-", is_data_loaded=True)
        assert resolver.pending_timers == 1
        resolver.close()
        assert resolver.pending_timers == 0

        await asyncio.sleep(0.05)
        assert viewport.lookups == []
        assert element.scrolled == []
        assert await resolver.wait() is False
        assert await resolver.activate("eventId", "event-", is_data_loaded=True) is False

    @pytest.mark.asyncio
    async def test_close_cancels_highlight_removal(self):
        element = FakeElement()
        location = MemoryLocation(f"{BASE}/app/timeline/c1?eventId=e1")
        resolver = DeepLinkResolver(
            location, FakeViewport({"event-e1": element}), highlight_ms=30, scroll_delay_ms=5
        )

        await resolver.activate("eventId", "event-", is_data_loaded=True)
        assert await resolver.wait() is True
        assert resolver.pending_timers == 1
        resolver.close()

        await asyncio.sleep(0.06)
        # Removal timer was cancelled with the view
        assert HIGHLIGHT_CLASS in element.classes

    @pytest.mark.asyncio
    async def test_close_while_waiting_resolves_false(self):
        location = MemoryLocation(f"{BASE}/app/timeline/c1?eventId=e1")
        resolver = DeepLinkResolver(location, FakeViewport({"event-e1": FakeElement()}), scroll_delay_ms=50)

        await resolver.activate("eventId", "event-", is_data_loaded=True)
        waiter = asyncio.create_task(resolver.wait())
        await asyncio.sleep(0)
        resolver.close()
        assert await waiter is False

    @pytest.mark.asyncio
    async def test_cancelling_the_waiter_propagates(self):
        location = MemoryLocation(f"{BASE}/app/timeline/c1?eventId=e1")
        resolver = DeepLinkResolver(location, FakeViewport({"event-e1": FakeElement()}), scroll_delay_ms=50)

        await resolver.activate("eventId", "event-", is_data_loaded=True)
        waiter = asyncio.create_task(resolver.wait())
        await asyncio.sleep(0)
        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter
        assert waiter.cancelled()
        resolver.close()

    @pytest.mark.asyncio
    async def test_timings_default_to_settings(self, monkeypatch):
        monkeypatch.setattr(
            "civilla.core.deep_link.get_settings",
            lambda: Settings(deep_link_highlight_ms=1500, deep_link_scroll_delay_ms=7),
        )
        resolver = DeepLinkResolver(MemoryLocation(f"{BASE}/app/timeline/c1"), FakeViewport())
        assert resolver.highlight_ms == 1500
        assert resolver.scroll_delay_ms == 7

        scheduled = []
        scroll_and_highlight(
            FakeViewport({"event-1": FakeElement()}),
            "event-1",
            schedule=lambda delay, cb: scheduled.append(delay),
        )
        assert scheduled == [1.5]

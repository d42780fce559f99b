"""
Case-wide Search Service
========================

Backs GET /api/search. Runs a case-insensitive substring match over every
searchable entity the user owns (optionally limited to one case), then
ranks, caps and returns a short mixed list for the quick-search dropdown.

Snippets wrap the matched text in [[H]]...[[/H]] so the client can
highlight it without re-running the match.

hrefs carry the deep-link parameters the module pages understand
(noteId, eventId, docId, snippetId, tpId) plus fileId/commId.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from civilla.core.deep_link import build_deep_link
from civilla.core.modules import ModuleKey, module_path
from civilla.models.models import (
    Case,
    CaseCommunication,
    Document,
    EvidenceFile,
    EvidenceNote,
    ExhibitSnippet,
    TimelineEvent,
    TrialPrepItem,
)

logger = logging.getLogger(__name__)


HIGHLIGHT_OPEN = "[[H]]"
HIGHLIGHT_CLOSE = "[[/H]]"
ELLIPSIS = "…"

MIN_QUERY_LENGTH = 2
DEFAULT_LIMIT = 5
PER_TABLE_LIMIT = 3
MAX_PER_TYPE = 2
CONTEXT_BEFORE = 30


class SearchResultType(str, Enum):
    EVIDENCE = "evidence"
    NOTE = "note"
    TIMELINE = "timeline"
    COMMUNICATION = "communication"
    DOCUMENT = "document"
    SNIPPET = "snippet"
    TRIALPREP = "trialprep"


@dataclass
class SearchResult:
    type: SearchResultType
    case_id: str
    id: str
    title: str
    snippet: str
    href: str
    case_title: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "type": self.type.value,
            "caseId": self.case_id,
            "id": self.id,
            "title": self.title,
            "snippet": self.snippet,
            "href": self.href,
        }
        if self.case_title is not None:
            data["caseTitle"] = self.case_title
        return data


# =============================================================================
# TEXT HELPERS
# =============================================================================

_WHITESPACE = re.compile(r"\s+")


def normalize_query(q: str) -> str:
    """Trim and collapse internal whitespace."""
    return _WHITESPACE.sub(" ", (q or "").strip())


def build_snippet(text: Optional[str], query: str, max_len: int = 100) -> str:
    """
    Window of `text` around the first case-insensitive match of `query`.

    Keeps CONTEXT_BEFORE characters before the match, fills the rest of
    `max_len` after it, adds ellipses where the text was cut, and wraps the
    match (original casing) in highlight markers. Without a match the text
    is truncated to `max_len`.
    """
    if not text:
        return ""

    match_idx = text.lower().find(query.lower()) if query else -1
    if match_idx == -1:
        return text[:max_len] + ELLIPSIS if len(text) > max_len else text

    context_after = max(0, max_len - CONTEXT_BEFORE - len(query))
    start = max(0, match_idx - CONTEXT_BEFORE)
    match_end = match_idx + len(query)
    end = min(len(text), match_end + context_after)

    snippet = (
        text[start:match_idx]
        + HIGHLIGHT_OPEN
        + text[match_idx:match_end]
        + HIGHLIGHT_CLOSE
        + text[match_end:end]
    )
    if start > 0:
        snippet = ELLIPSIS + snippet
    if end < len(text):
        snippet = snippet + ELLIPSIS
    return snippet


def score_result(result: SearchResult, query: str) -> int:
    """Title-based relevance: exact 100, prefix 90, contains 80, body-only 50."""
    title = result.title.lower()
    q = query.lower()
    if title == q:
        return 100
    if title.startswith(q):
        return 90
    if q in title:
        return 80
    return 50


def rank_results(
    results: List[SearchResult],
    query: str,
    limit: int = DEFAULT_LIMIT,
    max_per_type: int = MAX_PER_TYPE,
) -> List[SearchResult]:
    """
    Sort by score (stable), take at most `max_per_type` of each type up to
    `limit`, then backfill from the remaining results if there is room.
    """
    ordered = sorted(results, key=lambda r: score_result(r, query), reverse=True)

    type_counts: Dict[SearchResultType, int] = {}
    final: List[SearchResult] = []
    for r in ordered:
        if len(final) >= limit:
            break
        count = type_counts.get(r.type, 0)
        if count < max_per_type:
            final.append(r)
            type_counts[r.type] = count + 1

    if len(final) < limit:
        chosen = {id(r) for r in final}
        for r in ordered:
            if id(r) in chosen:
                continue
            final.append(r)
            if len(final) >= limit:
                break

    return final


# =============================================================================
# ENTITY SOURCES
# =============================================================================

@dataclass
class _Source:
    """How to search one table and turn its rows into results."""
    result_type: SearchResultType
    model: Any
    fields: List[str]
    title: Callable[[Any], str]
    body: Callable[[Any], Optional[str]]
    href: Callable[[Any], str]


def _href(module: ModuleKey, case_id: str, **params: Optional[str]) -> str:
    return build_deep_link(module_path(module, case_id), **params)


SOURCES: List[_Source] = [
    _Source(
        result_type=SearchResultType.EVIDENCE,
        model=EvidenceFile,
        fields=["original_name", "description", "notes"],
        title=lambda r: r.original_name,
        body=lambda r: r.description or r.original_name,
        href=lambda r: _href(ModuleKey.EVIDENCE, r.case_id, fileId=r.id),
    ),
    _Source(
        result_type=SearchResultType.NOTE,
        model=EvidenceNote,
        fields=["note_title", "note_text"],
        title=lambda r: r.note_title or "Note",
        body=lambda r: r.note_text,
        href=lambda r: _href(ModuleKey.EVIDENCE, r.case_id, noteId=r.id, fileId=r.evidence_file_id),
    ),
    _Source(
        result_type=SearchResultType.TIMELINE,
        model=TimelineEvent,
        fields=["title", "notes"],
        title=lambda r: r.title,
        body=lambda r: r.notes or r.title,
        href=lambda r: _href(ModuleKey.TIMELINE, r.case_id, eventId=r.id),
    ),
    _Source(
        result_type=SearchResultType.COMMUNICATION,
        model=CaseCommunication,
        fields=["subject", "summary"],
        title=lambda r: r.subject or "Communication",
        body=lambda r: r.summary,
        href=lambda r: _href(ModuleKey.COMMUNICATIONS, r.case_id, commId=r.id),
    ),
    _Source(
        result_type=SearchResultType.DOCUMENT,
        model=Document,
        fields=["title", "content"],
        title=lambda r: r.title,
        body=lambda r: r.content,
        href=lambda r: _href(ModuleKey.DOCUMENTS, r.case_id, docId=r.id),
    ),
    _Source(
        result_type=SearchResultType.SNIPPET,
        model=ExhibitSnippet,
        fields=["title", "snippet_text"],
        title=lambda r: r.title,
        body=lambda r: r.snippet_text,
        href=lambda r: _href(ModuleKey.EXHIBITS, r.case_id, snippetId=r.id),
    ),
    _Source(
        result_type=SearchResultType.TRIALPREP,
        model=TrialPrepItem,
        fields=["title", "summary"],
        title=lambda r: r.title,
        body=lambda r: r.summary or r.title,
        href=lambda r: _href(ModuleKey.TRIAL_PREP, r.case_id, tpId=r.id),
    ),
]


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


# =============================================================================
# SEARCH
# =============================================================================

@dataclass
class SearchOptions:
    limit: int = DEFAULT_LIMIT
    per_table_limit: int = PER_TABLE_LIMIT
    max_per_type: int = MAX_PER_TYPE
    min_query_length: int = MIN_QUERY_LENGTH
    snippet_length: int = 100


async def search_case_wide(
    session: AsyncSession,
    user_id: str,
    q: str,
    case_id: Optional[str] = None,
    options: Optional[SearchOptions] = None,
) -> List[SearchResult]:
    """
    Search the user's case materials.

    Queries shorter than the minimum (after normalization) return [] without
    touching the database. With `case_id` the search is limited to that case;
    otherwise it spans all of the user's cases and results carry case titles.
    """
    options = options or SearchOptions()
    query = normalize_query(q)
    if len(query) < options.min_query_length:
        return []

    pattern = f"%{_escape_like(query)}%"
    results: List[SearchResult] = []

    for source in SOURCES:
        model = source.model
        scope = [model.user_id == user_id]
        if case_id:
            scope.append(model.case_id == case_id)
        matches = or_(*[getattr(model, name).ilike(pattern, escape="\\") for name in source.fields])

        rows = (
            await session.execute(
                select(model).where(and_(*scope, matches)).limit(options.per_table_limit)
            )
        ).scalars().all()

        for row in rows:
            results.append(
                SearchResult(
                    type=source.result_type,
                    case_id=row.case_id,
                    id=row.id,
                    title=source.title(row),
                    snippet=build_snippet(source.body(row), query, options.snippet_length),
                    href=source.href(row),
                )
            )

    if results:
        case_rows = await session.execute(select(Case.id, Case.title).where(Case.user_id == user_id))
        case_titles = {row.id: row.title for row in case_rows}
        for r in results:
            r.case_title = case_titles.get(r.case_id)

    final = rank_results(results, query, limit=options.limit, max_per_type=options.max_per_type)
    logger.debug(
        "Search user=%s case=%s q=%r: %d matches, returning %d",
        user_id, case_id, query, len(results), len(final),
    )
    return final

"""
Search Router
Case-wide quick search over evidence, notes, timeline, communications,
documents, exhibit snippets and trial prep items.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from civilla.core.config import Settings, get_settings
from civilla.core.database import get_db
from civilla.core.security import get_user_id
from civilla.services.search import SearchOptions, search_case_wide


router = APIRouter(prefix="/api/search", tags=["Search"])


@router.get("")
async def search(
    q: str = Query("", description="Search text; fewer than 2 characters returns no results"),
    case_id: Optional[str] = Query(None, alias="caseId", description="Limit the search to one case"),
    user_id: str = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """
    Quick search for the header search box.

    Results are ranked by title match, capped per type, and carry an href
    with the deep-link parameter of the matched item.
    """
    options = SearchOptions(
        limit=settings.search_result_limit,
        per_table_limit=settings.search_per_table_limit,
        max_per_type=settings.search_max_per_type,
        min_query_length=settings.search_min_query_length,
        snippet_length=settings.search_snippet_length,
    )
    results = await search_case_wide(db, user_id, q, case_id=case_id, options=options)
    return {"ok": True, "results": [r.to_dict() for r in results]}

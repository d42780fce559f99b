"""
Case Workspace API
Cases, their guided module navigation, readiness score and phase.

Every route is scoped to the signed-in user: a case owned by someone else
answers 404, the same as a case that does not exist.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from civilla.core.config import Settings, get_settings
from civilla.core.database import get_db
from civilla.core.errors import CaseNotFoundError
from civilla.core.modules import (
    StartingPoint,
    get_next_module,
    get_ordered_modules,
    get_prev_module,
    parse_module_key,
)
from civilla.core.security import get_user_id
from civilla.core.utc import isoformat_or_none
from civilla.models.models import Case, User
from civilla.services.phase_resolver import PhaseInput, can_draft, resolve_case_phase
from civilla.services.readiness import collect_readiness_input, score_readiness

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cases", tags=["Cases"])


# =============================================================================
# Pydantic Models
# =============================================================================

class CaseCreate(BaseModel):
    """Create a new case (onboarding)."""
    title: str = Field(..., min_length=1, max_length=255)
    state: Optional[str] = Field(None, max_length=2)
    county: Optional[str] = Field(None, max_length=100)
    case_type: Optional[str] = Field(None, max_length=50)
    starting_point: Optional[StartingPoint] = None
    has_children: bool = False


class CaseUpdate(BaseModel):
    """Update case details. Only fields that are sent are changed."""
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    state: Optional[str] = Field(None, max_length=2)
    county: Optional[str] = Field(None, max_length=100)
    case_type: Optional[str] = Field(None, max_length=50)
    starting_point: Optional[StartingPoint] = None
    has_children: Optional[bool] = None


class CaseResponse(BaseModel):
    id: str
    title: str
    state: Optional[str] = None
    county: Optional[str] = None
    case_type: Optional[str] = None
    starting_point: Optional[str] = None
    has_children: bool = False
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class ModuleResponse(BaseModel):
    key: str
    label: str
    description: str
    href: str
    group: str
    gated_by_children: bool


class CaseModulesResponse(BaseModel):
    case_id: str
    starting_point: Optional[str] = None
    has_children: bool
    modules: List[ModuleResponse]


class ModuleNeighborsResponse(BaseModel):
    current: str
    prev: Optional[ModuleResponse] = None
    next: Optional[ModuleResponse] = None


class CasePhaseResponse(BaseModel):
    case_id: str
    phase: str
    can_draft: bool
    accepted_claims: int
    total_claims: int
    readiness_percent: int


# =============================================================================
# Helper Functions
# =============================================================================

def case_to_response(case: Case) -> CaseResponse:
    return CaseResponse(
        id=case.id,
        title=case.title,
        state=case.state,
        county=case.county,
        case_type=case.case_type,
        starting_point=case.starting_point,
        has_children=bool(case.has_children),
        created_at=isoformat_or_none(case.created_at),
        updated_at=isoformat_or_none(case.updated_at),
    )


async def get_owned_case(db: AsyncSession, case_id: str, user_id: str) -> Case:
    """Load a case owned by `user_id` or raise CaseNotFoundError."""
    result = await db.execute(
        select(Case).where(Case.id == case_id, Case.user_id == user_id)
    )
    case = result.scalar_one_or_none()
    if case is None:
        raise CaseNotFoundError(case_id)
    return case


async def ensure_user(db: AsyncSession, user_id: str) -> User:
    """Ownership anchor row for a user id coming from the session."""
    user = await db.get(User, user_id)
    if user is None:
        user = User(id=user_id)
        db.add(user)
        await db.flush()
    return user


# =============================================================================
# Case CRUD
# =============================================================================

@router.post("", response_model=CaseResponse, status_code=status.HTTP_201_CREATED)
async def create_case(
    payload: CaseCreate,
    user_id: str = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
):
    await ensure_user(db, user_id)
    case = Case(
        user_id=user_id,
        title=payload.title.strip(),
        state=payload.state,
        county=payload.county,
        case_type=payload.case_type,
        starting_point=payload.starting_point.value if payload.starting_point else None,
        has_children=payload.has_children,
    )
    db.add(case)
    await db.commit()
    await db.refresh(case)
    logger.info("Created case %s for user %s", case.id, user_id)
    return case_to_response(case)


@router.get("", response_model=List[CaseResponse])
async def list_cases(
    user_id: str = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(Case).where(Case.user_id == user_id).order_by(Case.created_at.desc())
    )
    return [case_to_response(c) for c in result.scalars().all()]


@router.get("/{case_id}", response_model=CaseResponse)
async def get_case(
    case_id: str,
    user_id: str = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
):
    return case_to_response(await get_owned_case(db, case_id, user_id))


@router.patch("/{case_id}", response_model=CaseResponse)
async def update_case(
    case_id: str,
    payload: CaseUpdate,
    user_id: str = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
):
    case = await get_owned_case(db, case_id, user_id)

    changes = payload.model_dump(exclude_unset=True)
    if "starting_point" in changes and changes["starting_point"] is not None:
        changes["starting_point"] = changes["starting_point"].value
    # Not nullable: an explicit null means "leave as is"
    for required in ("title", "has_children"):
        if required in changes and changes[required] is None:
            del changes[required]
    if "title" in changes:
        changes["title"] = changes["title"].strip()

    for field_name, value in changes.items():
        setattr(case, field_name, value)

    await db.commit()
    await db.refresh(case)
    return case_to_response(case)


# =============================================================================
# Module Navigation
# =============================================================================

@router.get("/{case_id}/modules", response_model=CaseModulesResponse)
async def list_case_modules(
    case_id: str,
    user_id: str = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Modules for this case, in the order its starting point calls for."""
    case = await get_owned_case(db, case_id, user_id)
    modules = get_ordered_modules(case.starting_point, bool(case.has_children))
    return CaseModulesResponse(
        case_id=case.id,
        starting_point=case.starting_point,
        has_children=bool(case.has_children),
        modules=[ModuleResponse(**m.to_dict(case.id)) for m in modules],
    )


@router.get("/{case_id}/modules/{module_key}/neighbors", response_model=ModuleNeighborsResponse)
async def get_module_neighbors(
    case_id: str,
    module_key: str,
    user_id: str = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
):
    """
    Previous / next module for the Back and Continue buttons.

    An unknown key, or one hidden for this case, gives null neighbors.
    """
    case = await get_owned_case(db, case_id, user_id)
    modules = get_ordered_modules(case.starting_point, bool(case.has_children))

    key = parse_module_key(module_key)
    if key is None:
        logger.debug("Neighbors requested for unknown module %r", module_key)
        return ModuleNeighborsResponse(current=module_key)

    prev_module = get_prev_module(key, modules)
    next_module = get_next_module(key, modules)
    return ModuleNeighborsResponse(
        current=key.value,
        prev=ModuleResponse(**prev_module.to_dict(case.id)) if prev_module else None,
        next=ModuleResponse(**next_module.to_dict(case.id)) if next_module else None,
    )


# =============================================================================
# Readiness & Phase
# =============================================================================

@router.get("/{case_id}/readiness")
async def get_case_readiness(
    case_id: str,
    user_id: str = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
):
    case = await get_owned_case(db, case_id, user_id)
    counts = await collect_readiness_input(db, case.id)
    report = score_readiness(counts)
    return {"case_id": case.id, **report.to_dict()}


@router.get("/{case_id}/phase", response_model=CasePhaseResponse)
async def get_case_phase(
    case_id: str,
    user_id: str = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Current lifecycle phase, recomputed from live counters."""
    case = await get_owned_case(db, case_id, user_id)
    counts = await collect_readiness_input(db, case.id)
    report = score_readiness(counts)

    phase_input = PhaseInput(
        accepted_claims=counts.claims_accepted,
        total_claims=counts.claims_total,
        readiness_percent=report.percent,
    )
    phase = resolve_case_phase(phase_input, settings.draft_ready_readiness_percent)
    return CasePhaseResponse(
        case_id=case.id,
        phase=phase.value,
        can_draft=can_draft(phase),
        accepted_claims=phase_input.accepted_claims,
        total_claims=phase_input.total_claims,
        readiness_percent=phase_input.readiness_percent,
    )

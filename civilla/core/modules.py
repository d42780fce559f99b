"""
Case Module Registry & Flow Ordering
====================================

Static catalog of the case workspace modules (Evidence, Timeline, ...) and
the orderings used for navigation and "continue to next" actions.

The ordering depends on why the user came to Civilla (their starting point,
collected at onboarding) and on whether the case involves children: modules
about children are hidden from cases without them.

Everything here is immutable and built at import time, so any number of
request handlers can read it concurrently.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple, Union

logger = logging.getLogger(__name__)


# =============================================================================
# ENUMS
# =============================================================================

class ModuleKey(str, Enum):
    """Identifiers of every case module."""
    EVIDENCE = "evidence"
    COMMUNICATIONS = "communications"
    TIMELINE = "timeline"
    CHILDREN = "children"
    DISCLOSURES = "disclosures"
    PATTERNS = "patterns"
    LIBRARY = "library"
    DOCUMENTS = "documents"
    DEADLINES = "deadlines"
    TASKS = "tasks"
    CONTACTS = "contacts"
    EXHIBITS = "exhibits"
    CHILD_SUPPORT = "child-support"
    TRIAL_PREP = "trial-prep"
    PARENTING_PLAN = "parenting-plan"


class ModuleGroup(str, Enum):
    """Navigation grouping"""
    CORE = "core"
    PLANNING = "planning"
    ANALYSIS = "analysis"
    EXTRAS = "extras"


class StartingPoint(str, Enum):
    """Why the user is here. Chosen during onboarding."""
    SERVED_PAPERS = "served_papers"
    STARTING_CASE = "starting_case"
    MODIFYING_ENFORCING = "modifying_enforcing"
    NOT_SURE = "not_sure"


# =============================================================================
# MODULE DEFINITION
# =============================================================================

@dataclass(frozen=True)
class ModuleDef:
    """
    One case module.

    `route` is the URL slug; the page for a case lives at /app/<route>/<case_id>.
    Modules with `gated_by_children` only appear for cases with children.
    """
    key: ModuleKey
    label: str
    description: str
    route: str
    group: ModuleGroup
    gated_by_children: bool = False

    def href(self, case_id: Optional[str] = None) -> str:
        if case_id:
            return f"/app/{self.route}/{case_id}"
        return f"/app/{self.route}"

    def to_dict(self, case_id: Optional[str] = None) -> Dict[str, object]:
        return {
            "key": self.key.value,
            "label": self.label,
            "description": self.description,
            "href": self.href(case_id),
            "group": self.group.value,
            "gated_by_children": self.gated_by_children,
        }


# =============================================================================
# REGISTRY
# =============================================================================

MODULES_REGISTRY: Tuple[ModuleDef, ...] = (
    ModuleDef(
        key=ModuleKey.EVIDENCE,
        label="Evidence",
        description="Upload and organize your documents and files",
        route="evidence",
        group=ModuleGroup.CORE,
    ),
    ModuleDef(
        key=ModuleKey.COMMUNICATIONS,
        label="Message and Call Log",
        description="Track messages, calls, and interactions",
        route="communications",
        group=ModuleGroup.CORE,
    ),
    ModuleDef(
        key=ModuleKey.TIMELINE,
        label="Timeline",
        description="Build a chronological record of events",
        route="timeline",
        group=ModuleGroup.CORE,
    ),
    ModuleDef(
        key=ModuleKey.CHILDREN,
        label="Children",
        description="Manage information about children involved",
        route="children",
        group=ModuleGroup.CORE,
        gated_by_children=True,
    ),
    ModuleDef(
        key=ModuleKey.DISCLOSURES,
        label="Disclosures and Discovery",
        description="Track disclosure requests and responses",
        route="disclosures",
        group=ModuleGroup.CORE,
    ),
    ModuleDef(
        key=ModuleKey.PATTERNS,
        label="Pattern Analysis",
        description="Identify patterns in communications",
        route="patterns",
        group=ModuleGroup.ANALYSIS,
    ),
    ModuleDef(
        key=ModuleKey.LIBRARY,
        label="Document Library",
        description="Reference court forms and templates",
        route="library",
        group=ModuleGroup.PLANNING,
    ),
    ModuleDef(
        key=ModuleKey.DOCUMENTS,
        label="Document Creator",
        description="Create and edit court documents",
        route="documents",
        group=ModuleGroup.PLANNING,
    ),
    ModuleDef(
        key=ModuleKey.DEADLINES,
        label="Deadlines",
        description="Track important dates and deadlines",
        route="deadlines",
        group=ModuleGroup.PLANNING,
    ),
    ModuleDef(
        key=ModuleKey.TASKS,
        label="Case To-Do",
        description="Manage your case tasks and checklist",
        route="tasks",
        group=ModuleGroup.PLANNING,
    ),
    ModuleDef(
        key=ModuleKey.CONTACTS,
        label="Contacts",
        description="Manage contacts related to your case",
        route="contacts",
        group=ModuleGroup.EXTRAS,
    ),
    ModuleDef(
        key=ModuleKey.EXHIBITS,
        label="Exhibits",
        description="Organize exhibits for court submissions",
        route="exhibits",
        group=ModuleGroup.EXTRAS,
    ),
    ModuleDef(
        key=ModuleKey.CHILD_SUPPORT,
        label="Child Support Estimator",
        description="Estimate child support calculations",
        route="child-support",
        group=ModuleGroup.EXTRAS,
        gated_by_children=True,
    ),
    ModuleDef(
        key=ModuleKey.TRIAL_PREP,
        label="Trial Prep",
        description="Organize your binder for court",
        route="trial-prep",
        group=ModuleGroup.EXTRAS,
    ),
    ModuleDef(
        key=ModuleKey.PARENTING_PLAN,
        label="Parenting Plan",
        description="Document parenting arrangements and schedules",
        route="parenting-plan",
        group=ModuleGroup.PLANNING,
        gated_by_children=True,
    ),
)

_MODULES_BY_KEY: Dict[ModuleKey, ModuleDef] = {m.key: m for m in MODULES_REGISTRY}


# =============================================================================
# ORDERINGS
# =============================================================================
# Each ordering is independent configuration, even where two currently match.

K = ModuleKey

BASE_ORDER: Tuple[ModuleKey, ...] = (
    K.EVIDENCE, K.COMMUNICATIONS, K.TIMELINE, K.CHILDREN, K.DISCLOSURES,
    K.PATTERNS, K.LIBRARY, K.DOCUMENTS, K.PARENTING_PLAN, K.DEADLINES,
    K.TASKS, K.CONTACTS, K.EXHIBITS, K.CHILD_SUPPORT, K.TRIAL_PREP,
)

SERVED_PAPERS_ORDER: Tuple[ModuleKey, ...] = (
    K.EVIDENCE, K.COMMUNICATIONS, K.TIMELINE, K.CHILDREN, K.DISCLOSURES,
    K.PATTERNS, K.LIBRARY, K.DOCUMENTS, K.PARENTING_PLAN, K.DEADLINES,
    K.TASKS, K.CONTACTS, K.EXHIBITS, K.CHILD_SUPPORT, K.TRIAL_PREP,
)

STARTING_CASE_ORDER: Tuple[ModuleKey, ...] = (
    K.LIBRARY, K.DOCUMENTS, K.PARENTING_PLAN, K.EVIDENCE, K.COMMUNICATIONS,
    K.TIMELINE, K.CHILDREN, K.DISCLOSURES, K.PATTERNS, K.DEADLINES,
    K.TASKS, K.CONTACTS, K.EXHIBITS, K.CHILD_SUPPORT, K.TRIAL_PREP,
)

MODIFYING_ENFORCING_ORDER: Tuple[ModuleKey, ...] = (
    K.TIMELINE, K.COMMUNICATIONS, K.EVIDENCE, K.CHILDREN, K.DISCLOSURES,
    K.PATTERNS, K.LIBRARY, K.DOCUMENTS, K.PARENTING_PLAN, K.DEADLINES,
    K.TASKS, K.CONTACTS, K.EXHIBITS, K.CHILD_SUPPORT, K.TRIAL_PREP,
)

del K

ORDERS_BY_STARTING_POINT: Dict[StartingPoint, Tuple[ModuleKey, ...]] = {
    StartingPoint.SERVED_PAPERS: SERVED_PAPERS_ORDER,
    StartingPoint.STARTING_CASE: STARTING_CASE_ORDER,
    StartingPoint.MODIFYING_ENFORCING: MODIFYING_ENFORCING_ORDER,
    StartingPoint.NOT_SURE: BASE_ORDER,
}


def _check_orderings() -> None:
    """Every ordering must be a permutation of the registry keys."""
    registry_keys = set(_MODULES_BY_KEY)
    for name, order in [("base", BASE_ORDER)] + [
        (sp.value, order) for sp, order in ORDERS_BY_STARTING_POINT.items()
    ]:
        if len(order) != len(set(order)) or set(order) != registry_keys:
            raise RuntimeError(f"Module ordering '{name}' does not match the registry")


_check_orderings()


# =============================================================================
# LOOKUPS
# =============================================================================

def parse_starting_point(value: Union[StartingPoint, str, None]) -> Optional[StartingPoint]:
    """Return the StartingPoint for `value`, or None if it is not one."""
    if isinstance(value, StartingPoint):
        return value
    try:
        return StartingPoint(value)
    except ValueError:
        return None


def parse_module_key(value: Union[ModuleKey, str, None]) -> Optional[ModuleKey]:
    """Return the ModuleKey for `value`, or None if it is not one."""
    if isinstance(value, ModuleKey):
        return value
    try:
        return ModuleKey(value)
    except ValueError:
        return None


def get_module(key: Union[ModuleKey, str, None]) -> Optional[ModuleDef]:
    """Registry lookup. Unknown keys return None."""
    module_key = parse_module_key(key)
    if module_key is None:
        return None
    return _MODULES_BY_KEY.get(module_key)


def module_path(key: Union[ModuleKey, str], case_id: Optional[str] = None) -> Optional[str]:
    """Page path for a module, e.g. /app/timeline/<case_id>. None for unknown keys."""
    module = get_module(key)
    if module is None:
        return None
    return module.href(case_id)


def get_order_for_starting_point(
    starting_point: Union[StartingPoint, str, None],
) -> Tuple[ModuleKey, ...]:
    """
    Ordering table for a starting point.

    Unrecognized values fall back to the base ordering instead of raising;
    navigation must always render something.
    """
    parsed = parse_starting_point(starting_point)
    if parsed is None:
        if starting_point is not None:
            logger.debug("Unknown starting point %r, using base module order", starting_point)
        return BASE_ORDER
    return ORDERS_BY_STARTING_POINT[parsed]


def get_ordered_modules(
    starting_point: Union[StartingPoint, str, None],
    has_children: bool,
) -> List[ModuleDef]:
    """
    Ordered, filtered module list for a case.

    Modules gated by children are dropped when `has_children` is false.
    """
    ordered: List[ModuleDef] = []
    for key in get_order_for_starting_point(starting_point):
        module = _MODULES_BY_KEY.get(key)
        if module is None:
            continue
        if module.gated_by_children and not has_children:
            continue
        ordered.append(module)
    return ordered


def _index_of(current_key: Union[ModuleKey, str], modules: Sequence[ModuleDef]) -> int:
    key = parse_module_key(current_key)
    if key is None:
        return -1
    for index, module in enumerate(modules):
        if module.key == key:
            return index
    return -1


def get_next_module(
    current_key: Union[ModuleKey, str],
    modules: Sequence[ModuleDef],
) -> Optional[ModuleDef]:
    """
    Module after `current_key` in `modules`.

    None at the end of the list, or when `current_key` is not in the list
    (the module may have been hidden while the user was on it).
    """
    index = _index_of(current_key, modules)
    if index == -1 or index >= len(modules) - 1:
        return None
    return modules[index + 1]


def get_prev_module(
    current_key: Union[ModuleKey, str],
    modules: Sequence[ModuleDef],
) -> Optional[ModuleDef]:
    """Module before `current_key` in `modules`; None at the start or if absent."""
    index = _index_of(current_key, modules)
    if index <= 0:
        return None
    return modules[index - 1]

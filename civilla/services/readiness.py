"""
Case Readiness Score
====================

Weighted completion score (0-100) over four case-preparation metrics:

| Metric             | Weight | Ratio                                  |
|--------------------|--------|----------------------------------------|
| Evidence Processed | 25     | extracted files / all files            |
| Claims Reviewed    | 35     | accepted claims / all claims           |
| Citations Linked   | 25     | cited accepted claims / accepted claims|
| Timeline Events    | 15     | min(events, 10) / 10                   |

A metric with nothing to measure (total 0) counts as complete. The
timeline target is fixed, so an empty case scores 85; the phase resolver
separately requires an accepted claim before drafting opens.
"""

import logging
import math
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from civilla.models.models import (
    CaseClaim,
    ClaimStatus,
    EvidenceFile,
    ExtractionStatus,
    TimelineEvent,
)

logger = logging.getLogger(__name__)


TIMELINE_EVENT_TARGET = 10


@dataclass
class ReadinessInput:
    """Raw counters for one case."""
    evidence_extracted: int = 0
    evidence_total: int = 0
    claims_accepted: int = 0
    claims_total: int = 0
    citations_attached: int = 0
    citations_total: int = 0
    timeline_events: int = 0


@dataclass
class ReadinessMetric:
    key: str
    label: str
    current: int
    total: int
    weight: int
    tip: Optional[str] = None

    @property
    def ratio(self) -> float:
        return self.current / self.total if self.total > 0 else 1.0


@dataclass
class ReadinessReport:
    percent: int
    label: str
    metrics: List[ReadinessMetric] = field(default_factory=list)
    counts: ReadinessInput = field(default_factory=ReadinessInput)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "percent": self.percent,
            "label": self.label,
            "metrics": [
                {**asdict(m), "ratio": round(m.ratio, 4)} for m in self.metrics
            ],
            "counts": asdict(self.counts),
        }


def build_metrics(counts: ReadinessInput) -> List[ReadinessMetric]:
    """Turn raw counters into the four weighted metrics."""
    return [
        ReadinessMetric(
            key="evidence_processed",
            label="Evidence Processed",
            current=counts.evidence_extracted,
            total=counts.evidence_total,
            weight=25,
            tip=(
                "Some evidence files are still being processed or awaiting extraction."
                if counts.evidence_extracted < counts.evidence_total else None
            ),
        ),
        ReadinessMetric(
            key="claims_reviewed",
            label="Claims Reviewed",
            current=counts.claims_accepted,
            total=counts.claims_total,
            weight=35,
            tip=(
                "Review pending claims to decide which to accept or reject."
                if counts.claims_accepted < counts.claims_total else None
            ),
        ),
        ReadinessMetric(
            key="citations_linked",
            label="Citations Linked",
            current=counts.citations_attached,
            total=counts.citations_total,
            weight=25,
            tip=(
                "Some claims may benefit from additional source citations."
                if counts.citations_attached < counts.citations_total else None
            ),
        ),
        ReadinessMetric(
            key="timeline_events",
            label="Timeline Events",
            current=min(counts.timeline_events, TIMELINE_EVENT_TARGET),
            total=TIMELINE_EVENT_TARGET,
            weight=15,
            tip=(
                "Adding timeline events helps organize the case chronology."
                if counts.timeline_events < 5 else None
            ),
        ),
    ]


def calculate_readiness_percent(metrics: List[ReadinessMetric]) -> int:
    total_weight = sum(m.weight for m in metrics)
    if total_weight == 0:
        return 0
    weighted_sum = sum(m.ratio * m.weight for m in metrics)
    # Half rounds up (62.5 -> 63), not to even
    return math.floor(weighted_sum / total_weight * 100 + 0.5)


def readiness_label(percent: int) -> str:
    if percent >= 75:
        return "Well Prepared"
    if percent >= 50:
        return "In Progress"
    if percent >= 25:
        return "Getting Started"
    return "Early Stage"


def score_readiness(counts: ReadinessInput) -> ReadinessReport:
    metrics = build_metrics(counts)
    percent = calculate_readiness_percent(metrics)
    return ReadinessReport(
        percent=percent,
        label=readiness_label(percent),
        metrics=metrics,
        counts=counts,
    )


async def _count(session: AsyncSession, stmt) -> int:
    result = await session.execute(stmt)
    return int(result.scalar_one() or 0)


async def collect_readiness_input(session: AsyncSession, case_id: str) -> ReadinessInput:
    """Load the readiness counters for a case from the database."""
    evidence_total = await _count(
        session,
        select(func.count(EvidenceFile.id)).where(EvidenceFile.case_id == case_id),
    )
    evidence_extracted = await _count(
        session,
        select(func.count(EvidenceFile.id)).where(
            EvidenceFile.case_id == case_id,
            EvidenceFile.extraction_status == ExtractionStatus.complete.value,
        ),
    )
    claims_total = await _count(
        session,
        select(func.count(CaseClaim.id)).where(CaseClaim.case_id == case_id),
    )
    claims_accepted = await _count(
        session,
        select(func.count(CaseClaim.id)).where(
            CaseClaim.case_id == case_id,
            CaseClaim.status == ClaimStatus.accepted.value,
        ),
    )
    citations_attached = await _count(
        session,
        select(func.count(CaseClaim.id)).where(
            CaseClaim.case_id == case_id,
            CaseClaim.status == ClaimStatus.accepted.value,
            CaseClaim.citation_count > 0,
        ),
    )
    timeline_events = await _count(
        session,
        select(func.count(TimelineEvent.id)).where(TimelineEvent.case_id == case_id),
    )

    counts = ReadinessInput(
        evidence_extracted=evidence_extracted,
        evidence_total=evidence_total,
        claims_accepted=claims_accepted,
        claims_total=claims_total,
        citations_attached=citations_attached,
        citations_total=claims_accepted,
        timeline_events=timeline_events,
    )
    logger.debug("Readiness counters for case %s: %s", case_id, counts)
    return counts

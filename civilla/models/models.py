"""
Civilla Database Models
SQLAlchemy ORM models for the case workspace.

Every case-owned row carries both case_id and user_id so queries can be
scoped to the signed-in user without a join.
All datetime columns use DateTime(timezone=True); defaults come from utc_now().
"""

import enum
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from civilla.core.database import Base
from civilla.core.utc import utc_now


DateTimeTZ = DateTime(timezone=True)


def new_id() -> str:
    return str(uuid.uuid4())


# =============================================================================
# Enums
# =============================================================================

class ExtractionStatus(enum.Enum):
    """Text extraction state of an evidence file."""
    pending = "pending"
    processing = "processing"
    complete = "complete"
    failed = "failed"


class ClaimStatus(enum.Enum):
    """Review state of a claim suggested from the evidence."""
    suggested = "suggested"
    accepted = "accepted"
    rejected = "rejected"


# =============================================================================
# User & Case
# =============================================================================

class User(Base):
    """Account row. Sign-in lives in the session service; this only anchors ownership."""
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    email: Mapped[Optional[str]] = mapped_column(String(255), unique=True, nullable=True)
    display_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTimeTZ, default=utc_now)

    cases: Mapped[list["Case"]] = relationship(back_populates="user", cascade="all, delete-orphan")


class Case(Base):
    """
    A family-law case workspace.

    starting_point and has_children come from onboarding and decide which
    modules are shown and in what order.
    """
    __tablename__ = "cases"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), index=True)
    title: Mapped[str] = mapped_column(String(255))
    state: Mapped[Optional[str]] = mapped_column(String(2), nullable=True)
    county: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    case_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    starting_point: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    has_children: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTimeTZ, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTimeTZ, default=utc_now, onupdate=utc_now)

    user: Mapped["User"] = relationship(back_populates="cases")


# =============================================================================
# Evidence
# =============================================================================

class EvidenceFile(Base):
    __tablename__ = "evidence_files"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    case_id: Mapped[str] = mapped_column(String(36), ForeignKey("cases.id", ondelete="CASCADE"), index=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), index=True)
    original_name: Mapped[str] = mapped_column(String(255))
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    extraction_status: Mapped[str] = mapped_column(String(20), default=ExtractionStatus.pending.value)
    created_at: Mapped[datetime] = mapped_column(DateTimeTZ, default=utc_now)


class EvidenceNote(Base):
    """Note attached to an evidence file. Deep link: ?noteId="""
    __tablename__ = "evidence_notes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    case_id: Mapped[str] = mapped_column(String(36), ForeignKey("cases.id", ondelete="CASCADE"), index=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), index=True)
    evidence_file_id: Mapped[str] = mapped_column(String(36), ForeignKey("evidence_files.id", ondelete="CASCADE"))
    note_title: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    note_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTimeTZ, default=utc_now)


class CaseClaim(Base):
    """Claim drawn from the evidence, reviewed by the user before drafting."""
    __tablename__ = "case_claims"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    case_id: Mapped[str] = mapped_column(String(36), ForeignKey("cases.id", ondelete="CASCADE"), index=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), index=True)
    claim_text: Mapped[str] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String(20), default=ClaimStatus.suggested.value, index=True)
    citation_count: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTimeTZ, default=utc_now)


# =============================================================================
# Timeline & Communications
# =============================================================================

class TimelineEvent(Base):
    """Deep link: ?eventId="""
    __tablename__ = "timeline_events"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    case_id: Mapped[str] = mapped_column(String(36), ForeignKey("cases.id", ondelete="CASCADE"), index=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), index=True)
    title: Mapped[str] = mapped_column(String(255))
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    event_date: Mapped[Optional[datetime]] = mapped_column(DateTimeTZ, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTimeTZ, default=utc_now)


class CaseCommunication(Base):
    """Message or call log entry."""
    __tablename__ = "case_communications"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    case_id: Mapped[str] = mapped_column(String(36), ForeignKey("cases.id", ondelete="CASCADE"), index=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), index=True)
    subject: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    occurred_at: Mapped[Optional[datetime]] = mapped_column(DateTimeTZ, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTimeTZ, default=utc_now)


# =============================================================================
# Documents, Exhibits, Trial Prep
# =============================================================================

class Document(Base):
    """Court document drafted in the Document Creator. Deep link: ?docId="""
    __tablename__ = "documents"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    case_id: Mapped[str] = mapped_column(String(36), ForeignKey("cases.id", ondelete="CASCADE"), index=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), index=True)
    title: Mapped[str] = mapped_column(String(255))
    content: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTimeTZ, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTimeTZ, default=utc_now, onupdate=utc_now)


class ExhibitSnippet(Base):
    """Excerpt clipped from evidence for an exhibit. Deep link: ?snippetId="""
    __tablename__ = "exhibit_snippets"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    case_id: Mapped[str] = mapped_column(String(36), ForeignKey("cases.id", ondelete="CASCADE"), index=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), index=True)
    title: Mapped[str] = mapped_column(String(255))
    snippet_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTimeTZ, default=utc_now)


class TrialPrepItem(Base):
    """Entry in the trial binder shortlist. Deep link: ?tpId="""
    __tablename__ = "trial_prep_items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    case_id: Mapped[str] = mapped_column(String(36), ForeignKey("cases.id", ondelete="CASCADE"), index=True)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), index=True)
    title: Mapped[str] = mapped_column(String(255))
    summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTimeTZ, default=utc_now)

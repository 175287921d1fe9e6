"""SQLAlchemy ORM models for the character sheet engine."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _uuid() -> str:
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


_DEFAULT_CONDITIONS = (
    '{"exhausted":false,"sickly":false,"dazed":false,'
    '"angry":false,"scared":false,"disheartened":false}'
)
_DEFAULT_ATTRIBUTES = '{"STR":10,"AGL":10,"INT":10,"CHA":10,"CON":10,"WIL":10}'


class Base(DeclarativeBase):
    pass


class Character(Base):
    """A player character sheet. Only the vitals columns are written by the engine."""

    __tablename__ = "characters"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_uuid)
    user_id: Mapped[str | None] = mapped_column(String(32), nullable=True)
    party_id: Mapped[str | None] = mapped_column(String(32), nullable=True)
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    kin: Mapped[str | None] = mapped_column(String(32), nullable=True)
    profession: Mapped[str | None] = mapped_column(String(32), nullable=True)
    attributes_json: Mapped[str] = mapped_column(
        Text, nullable=False, default=_DEFAULT_ATTRIBUTES
    )
    skill_levels_json: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Vitals
    current_hp: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    max_hp: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    current_wp: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    max_wp: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    conditions_json: Mapped[str] = mapped_column(
        Text, nullable=False, default=_DEFAULT_CONDITIONS
    )
    death_rolls_passed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    death_rolls_failed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_rallied: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    combatants: Mapped[list[Combatant]] = relationship(back_populates="character")

    def __str__(self) -> str:
        return f"{self.name} ({self.id[:8]})"

    __table_args__ = (
        Index("ix_character_user", "user_id"),
        Index("ix_character_party", "party_id"),
    )


class Combatant(Base):
    """A participant in an encounter. Characters and monsters both appear here."""

    __tablename__ = "combatants"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_uuid)
    encounter_id: Mapped[str] = mapped_column(String(32), nullable=False)
    character_id: Mapped[str | None] = mapped_column(
        String(32), ForeignKey("characters.id"), nullable=True
    )
    display_name: Mapped[str] = mapped_column(String(64), nullable=False)
    initiative_roll: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    character: Mapped[Character | None] = relationship(back_populates="combatants")

    def __str__(self) -> str:
        return self.display_name

    __table_args__ = (
        Index("ix_combatant_encounter", "encounter_id"),
    )

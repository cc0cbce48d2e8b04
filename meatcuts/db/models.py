"""SQLAlchemy ORM models for the meat cuts catalog.

Tables:
- meat_cuts: one row per catalog item, owning its price range and image pointer
- cooking_methods / recommended_dishes: name-unique tags shared across meat cuts
- meat_cut_cooking_methods / meat_cut_recommended_dishes: association edges
- sync_metadata: key/value timestamps per concern (catalog mutation, CSV export)
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class Base(DeclarativeBase):
    pass


meat_cut_cooking_methods = Table(
    "meat_cut_cooking_methods",
    Base.metadata,
    Column("meat_cut_id", ForeignKey("meat_cuts.id", ondelete="CASCADE"), primary_key=True),
    Column("cooking_method_id", ForeignKey("cooking_methods.id", ondelete="CASCADE"), primary_key=True),
)

meat_cut_recommended_dishes = Table(
    "meat_cut_recommended_dishes",
    Base.metadata,
    Column("meat_cut_id", ForeignKey("meat_cuts.id", ondelete="CASCADE"), primary_key=True),
    Column("recommended_dish_id", ForeignKey("recommended_dishes.id", ondelete="CASCADE"), primary_key=True),
)


class CookingMethod(Base):
    __tablename__ = "cooking_methods"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class RecommendedDish(Base):
    __tablename__ = "recommended_dishes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class MeatCut(Base):
    """A catalog item.

    The image pointer (``image_asset_id`` + ``image_url``) is either fully set
    or fully empty; use :meth:`link_image` / :meth:`unlink_image` to change it.
    """

    __tablename__ = "meat_cuts"
    __table_args__ = (
        CheckConstraint("price_min >= 0 AND price_max >= 0", name="ck_meat_cuts_price_non_negative"),
        CheckConstraint("price_min <= price_max", name="ck_meat_cuts_price_ordered"),
        CheckConstraint(
            "(image_asset_id IS NULL AND image_url IS NULL) "
            "OR (image_asset_id IS NOT NULL AND image_url IS NOT NULL)",
            name="ck_meat_cuts_image_pointer_paired",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    chinese_name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    part: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    lean: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    price_min: Mapped[float] = mapped_column(Float, nullable=False)
    price_max: Mapped[float] = mapped_column(Float, nullable=False)
    price_mean: Mapped[float] = mapped_column(Float, nullable=False)
    price_display: Mapped[str] = mapped_column(String(64), nullable=False)

    texture_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_reference: Mapped[str] = mapped_column(String(255), nullable=False)
    image_asset_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)

    slug: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    cooking_methods: Mapped[list[CookingMethod]] = relationship(
        secondary=meat_cut_cooking_methods,
        order_by=CookingMethod.name,
    )
    recommended_dishes: Mapped[list[RecommendedDish]] = relationship(
        secondary=meat_cut_recommended_dishes,
        order_by=RecommendedDish.name,
    )

    def link_image(self, asset_id: str, url: str) -> None:
        if not asset_id or not url:
            raise ValueError("image asset id and url must be set together")
        self.image_asset_id = asset_id
        self.image_url = url
        self.touch()

    def unlink_image(self) -> None:
        self.image_asset_id = None
        self.image_url = None
        self.touch()

    def touch(self) -> None:
        """Bump ``updated_at``; tag-only edits do not trigger ``onupdate``."""
        self.updated_at = utcnow()

    def __repr__(self) -> str:
        return f"MeatCut(id={self.id!r}, slug={self.slug!r})"


class SyncMetadata(Base):
    __tablename__ = "sync_metadata"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

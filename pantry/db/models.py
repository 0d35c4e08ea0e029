"""SQLAlchemy async database models for Pantry.

Covers the slice of the portal schema the food program's price catalog
needs: centers, ingredients, vendors, ingredient prices and the generic
key-value settings table.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql import func

INGREDIENT_CATEGORIES = (
    "produce",
    "dairy",
    "protein",
    "grain",
    "canned",
    "frozen",
    "beverage",
    "condiment",
    "general",
)


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class CenterModel(Base):
    """Childcare center. Managed by the portal's center CRUD."""

    __tablename__ = "centers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    city: Mapped[str | None] = mapped_column(Text)
    state: Mapped[str | None] = mapped_column(String(2))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class IngredientModel(Base):
    """Food item tracked for purchasing."""

    __tablename__ = "ingredients"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    category: Mapped[str] = mapped_column(Text, nullable=False, default="general")
    unit: Mapped[str] = mapped_column(Text, nullable=False, default="each")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    prices: Mapped[list[IngredientPriceModel]] = relationship(
        back_populates="ingredient", cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint(
            "category IN ({})".format(
                ", ".join(f"'{c}'" for c in INGREDIENT_CATEGORIES)
            ),
            name="check_ingredient_category",
        ),
    )


class VendorModel(Base):
    """Supplier prices are sourced from."""

    __tablename__ = "vendors"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class IngredientPriceModel(Base):
    """Priced (ingredient, vendor) observation.

    Rows with a center_id were entered by hand for that center. Rows with
    center_id NULL are automatic and belong to the price refresh job, which
    keeps at most one of them per (ingredient, vendor).
    """

    __tablename__ = "ingredient_prices"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ingredient_id: Mapped[int] = mapped_column(
        ForeignKey("ingredients.id", ondelete="CASCADE"), nullable=False
    )
    vendor_id: Mapped[int] = mapped_column(
        ForeignKey("vendors.id", ondelete="CASCADE"), nullable=False
    )
    center_id: Mapped[int | None] = mapped_column(
        ForeignKey("centers.id", ondelete="CASCADE"), nullable=True
    )

    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    unit: Mapped[str] = mapped_column(Text, nullable=False)
    recorded_date: Mapped[date] = mapped_column(Date, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    ingredient: Mapped[IngredientModel] = relationship(back_populates="prices")
    vendor: Mapped[VendorModel] = relationship()

    __table_args__ = (
        CheckConstraint("price >= 0", name="check_price_non_negative"),
        Index("idx_ingredient_prices_pair", "ingredient_id", "vendor_id"),
        Index("idx_ingredient_prices_center", "center_id"),
    )

    @property
    def is_automatic(self) -> bool:
        return self.center_id is None


class AppSettingModel(Base):
    """Generic durable key-value setting."""

    __tablename__ = "app_settings"

    key: Mapped[str] = mapped_column(Text, primary_key=True)
    value: Mapped[str | None] = mapped_column(Text)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

"""Database layer for Pantry with async SQLAlchemy."""

from pantry.db.connection import get_session, init_db
from pantry.db.models import (
    AppSettingModel,
    Base,
    CenterModel,
    IngredientModel,
    IngredientPriceModel,
    VendorModel,
)

__all__ = [
    "Base",
    "AppSettingModel",
    "CenterModel",
    "IngredientModel",
    "IngredientPriceModel",
    "VendorModel",
    "get_session",
    "init_db",
]

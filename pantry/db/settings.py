"""Key-value access to the app_settings table.

Callers own the session and the transaction boundary.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from pantry.db.models import AppSettingModel


async def get_settings(session: AsyncSession, keys: list[str]) -> dict[str, Optional[str]]:
    """Fetch several keys in one query. Missing keys map to None."""
    result = await session.execute(
        select(AppSettingModel.key, AppSettingModel.value).where(
            AppSettingModel.key.in_(keys)
        )
    )
    found = {row.key: row.value for row in result}
    return {key: found.get(key) for key in keys}


async def set_setting(session: AsyncSession, key: str, value: Optional[str]) -> None:
    """Insert or overwrite a setting."""
    result = await session.execute(
        update(AppSettingModel)
        .where(AppSettingModel.key == key)
        .values(value=value)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        session.add(AppSettingModel(key=key, value=value))
        await session.flush()


async def compare_and_set(
    session: AsyncSession, key: str, value: str, *, unless: str
) -> bool:
    """Atomically set key to value unless it currently holds `unless`.

    A single conditional UPDATE claims an existing row; a missing row is
    claimed by INSERT, where the primary key settles concurrent inserts.
    A lost insert race rolls the session back, so call this first in its
    transaction.

    Returns:
        True if this caller performed the write, False if the current value
        was `unless` (or another caller won the insert).
    """
    result = await session.execute(
        update(AppSettingModel)
        .where(
            AppSettingModel.key == key,
            or_(AppSettingModel.value.is_(None), AppSettingModel.value != unless),
        )
        .values(value=value)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 1:
        return True

    exists = await session.execute(
        select(AppSettingModel.key).where(AppSettingModel.key == key)
    )
    if exists.scalar_one_or_none() is not None:
        return False

    session.add(AppSettingModel(key=key, value=value))
    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        return False
    return True

# FILE: bananary/services/config_service.py
import logging
from typing import Dict

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bananary.core.config import (
    ENHANCED_GENERATION_COST,
    IMAGE_GENERATION_COST,
    SIGNUP_BONUS_CREDITS,
    VIDEO_GENERATION_COST,
)
from bananary.models.system_config import SystemConfig

logger = logging.getLogger("bananary.config")

CREDIT_DEFAULTS: Dict[str, int] = {
    "credits.image_cost": IMAGE_GENERATION_COST,
    "credits.enhanced_cost": ENHANCED_GENERATION_COST,
    "credits.video_cost": VIDEO_GENERATION_COST,
    "credits.signup_bonus": SIGNUP_BONUS_CREDITS,
}


async def get_int(db: AsyncSession, key: str) -> int:
    default = CREDIT_DEFAULTS[key]
    row = (await db.execute(select(SystemConfig).where(SystemConfig.key == key))).scalar_one_or_none()
    if not row:
        return default
    try:
        return int(row.value)
    except (TypeError, ValueError):
        logger.warning("system_config %s has non-integer value %r, using %s", key, row.value, default)
        return default


async def credit_costs(db: AsyncSession) -> Dict[str, int]:
    rows = (
        await db.execute(select(SystemConfig).where(SystemConfig.key.in_(list(CREDIT_DEFAULTS))))
    ).scalars().all()
    costs = dict(CREDIT_DEFAULTS)
    for r in rows:
        try:
            costs[r.key] = int(r.value)
        except (TypeError, ValueError):
            logger.warning("system_config %s has non-integer value %r", r.key, r.value)
    return costs

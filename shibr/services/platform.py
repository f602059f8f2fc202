"""Admin-editable platform settings with configured defaults."""
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shibr.core.config import settings
from shibr.core.exceptions import BusinessRuleError
from shibr.models.platform import PlatformSetting

PLATFORM_FEE = "platform_fee_percentage"
MINIMUM_SHELF_PRICE = "minimum_shelf_price"
MAXIMUM_DISCOUNT = "maximum_discount_percentage"

DEFAULTS = {
    PLATFORM_FEE: (settings.DEFAULT_PLATFORM_FEE_PERCENTAGE, "Fee added on top of the shelf monthly price (%)"),
    MINIMUM_SHELF_PRICE: (settings.DEFAULT_MINIMUM_SHELF_PRICE, "Lowest monthly price a shelf may be listed at"),
    MAXIMUM_DISCOUNT: (settings.DEFAULT_MAXIMUM_DISCOUNT_PERCENTAGE, "Largest discount a store may offer (%)"),
}


async def get_settings(db: AsyncSession) -> dict[str, float]:
    values = {key: default for key, (default, _) in DEFAULTS.items()}
    result = await db.execute(select(PlatformSetting))
    for row in result.scalars().all():
        values[row.key] = row.value
    return values


async def get_setting(db: AsyncSession, key: str) -> float:
    value = await db.scalar(select(PlatformSetting.value).where(PlatformSetting.key == key))
    if value is None:
        return DEFAULTS[key][0]
    return value


async def update_settings(db: AsyncSession, updates: dict[str, float]) -> dict[str, float]:
    for key, value in updates.items():
        if key not in DEFAULTS:
            raise BusinessRuleError(f"Unknown setting: {key}")
        if value < 0:
            raise BusinessRuleError(f"{key} must not be negative")
        if key in (PLATFORM_FEE, MAXIMUM_DISCOUNT) and value > 100:
            raise BusinessRuleError(f"{key} must not exceed 100")

        row = await db.scalar(select(PlatformSetting).where(PlatformSetting.key == key))
        if row is None:
            db.add(PlatformSetting(key=key, value=value, description=DEFAULTS[key][1]))
        else:
            row.value = value
    await db.flush()
    return await get_settings(db)


async def seed_defaults(db: AsyncSession) -> None:
    """Insert any missing setting rows with their default values."""
    existing = set((await db.execute(select(PlatformSetting.key))).scalars().all())
    for key, (value, description) in DEFAULTS.items():
        if key not in existing:
            db.add(PlatformSetting(key=key, value=value, description=description))
    await db.flush()

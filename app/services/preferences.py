from typing import Any, Optional

import structlog
from pydantic import ValidationError

from app.core.config import settings
from app.core.redis import redis_client
from app.schemas.preferences import DashboardPreferences, DashboardPreferencesUpdate

logger = structlog.get_logger(__name__)


class PreferencesStore:
    """Persist dashboard preferences in a key-value store (Redis by default).

    The store only needs async ``get(key)`` and ``set(key, value)``, so tests
    can hand in any object with that shape.
    """

    def __init__(self, kv: Any = None, key: Optional[str] = None):
        self.kv = kv or redis_client
        self.key = key or settings.PREFERENCES_KEY

    async def load(self) -> DashboardPreferences:
        """Stored preferences, or the defaults when nothing usable is stored."""
        raw = await self.kv.get(self.key)
        if raw is None:
            return DashboardPreferences()

        try:
            return DashboardPreferences.model_validate(raw)
        except ValidationError as e:
            logger.warning(
                "Discarding invalid stored preferences", key=self.key, error=str(e)
            )
            return DashboardPreferences()

    async def save(self, preferences: DashboardPreferences) -> DashboardPreferences:
        stored = await self.kv.set(self.key, preferences.model_dump())
        if not stored:
            raise RuntimeError("Failed to store dashboard preferences")

        logger.info("Dashboard preferences saved", key=self.key)
        return preferences

    async def update(self, changes: DashboardPreferencesUpdate) -> DashboardPreferences:
        """Apply the given changes on top of the stored preferences."""
        current = await self.load()
        merged = DashboardPreferences.model_validate(
            {**current.model_dump(), **changes.model_dump(exclude_none=True)}
        )
        return await self.save(merged)

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class DashboardPreferences(BaseModel):
    """Display settings of the admin dashboard.

    Immutable: build a changed copy with ``model_copy(update=...)`` and save
    that.
    """

    model_config = ConfigDict(frozen=True)

    theme: Literal["light", "dark"] = "light"
    font_size: Literal["small", "medium", "large"] = "medium"
    auto_refresh: bool = False
    auto_refresh_seconds: int = Field(60, ge=10, le=3600)


class DashboardPreferencesUpdate(BaseModel):
    theme: Optional[Literal["light", "dark"]] = None
    font_size: Optional[Literal["small", "medium", "large"]] = None
    auto_refresh: Optional[bool] = None
    auto_refresh_seconds: Optional[int] = Field(None, ge=10, le=3600)

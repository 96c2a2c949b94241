from fastapi import APIRouter, Depends, HTTPException

from app.api.deps.services import get_preferences_store
from app.schemas.preferences import DashboardPreferences, DashboardPreferencesUpdate
from app.services.preferences import PreferencesStore

router = APIRouter()


@router.get("/", response_model=DashboardPreferences)
async def get_preferences(store: PreferencesStore = Depends(get_preferences_store)):
    """Current dashboard preferences (defaults when none were saved)."""
    return await store.load()


@router.put("/", response_model=DashboardPreferences)
async def update_preferences(
    changes: DashboardPreferencesUpdate,
    store: PreferencesStore = Depends(get_preferences_store),
):
    """Change some or all dashboard preferences."""
    try:
        return await store.update(changes)
    except RuntimeError as e:
        raise HTTPException(status_code=503, detail=str(e))

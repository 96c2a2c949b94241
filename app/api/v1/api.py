from fastapi import APIRouter

from app.api.v1.endpoints import (
    appointments,
    clients,
    preferences,
    scheduling,
    wash_types,
)

api_router = APIRouter()

# Appointment management endpoints
api_router.include_router(
    appointments.router, prefix="/appointments", tags=["appointments"]
)

# Availability and calendar endpoints
api_router.include_router(scheduling.router, prefix="/scheduling", tags=["scheduling"])

# Wash-type catalog endpoints
api_router.include_router(wash_types.router, prefix="/wash-types", tags=["wash-types"])

# Client management endpoints
api_router.include_router(clients.router, prefix="/clients", tags=["clients"])

# Dashboard preferences
api_router.include_router(
    preferences.router, prefix="/preferences", tags=["preferences"]
)

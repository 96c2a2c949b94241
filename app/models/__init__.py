# Import all models to ensure they are registered with SQLAlchemy
from . import (
    appointment,
    client,
    wash_type,
)

__all__ = [
    "appointment",
    "client",
    "wash_type",
]

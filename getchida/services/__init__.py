from getchida.services import (
    analytics_service,
    chore_service,
    profile_service,
)


__all__ = [
    "analytics_service",
    "chore_service",
    "profile_service",
]

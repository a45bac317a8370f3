from .ai import router as ai_router
from .auth import router as auth_router
from .dashboard import router as dashboard_router
from .practice import router as practice_router
from .users import router as users_router

__all__ = ["ai_router", "auth_router", "dashboard_router", "practice_router", "users_router"]

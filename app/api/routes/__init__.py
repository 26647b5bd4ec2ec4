from app.api.routes.auth import router as auth_router
from app.api.routes.user import router as users_router
from app.api.routes.message import router as messages_router
from app.api.routes.group import router as groups_router
from app.api.routes.websocket import router as websocket_router

__all__ = ["auth_router", "users_router", "messages_router", "groups_router", "websocket_router"]

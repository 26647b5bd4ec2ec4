# app/main.py
import logging
import time
from datetime import datetime
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from app import database
from app.config import settings
from app.api.routes import auth_router, users_router, messages_router, groups_router, websocket_router

logger = logging.getLogger(__name__)

STARTED_AT = time.monotonic()

def setup_logging(logging_level: str):
    level = logging.getLevelName(logging_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    logging.getLogger("uvicorn").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    logger.info(f"Logging configured with level: {logging_level}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    setup_logging(settings.LOG_LEVEL)
    await database.init_models()
    logger.info(f"🚀 Starting {settings.PROJECT_NAME}...")
    logger.info("📡 WebSocket available at: ws://localhost:8000/ws?token={jwt}")
    yield
    # Shutdown
    await database.dispose_engine()
    logger.info("👋 Shutting down...")

app = FastAPI(
    title=settings.PROJECT_NAME,
    description="WhatsApp-style chat backend with per-field profile privacy",
    version=settings.VERSION,
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "PUT", "PATCH"],
    allow_headers=["*"],
)

# Подключаем роуты
app.include_router(
    auth_router,
    prefix=settings.API_PREFIX,
    tags=["auth"]
)

app.include_router(
    users_router,
    prefix=settings.API_PREFIX,
    tags=["users"]
)

app.include_router(
    messages_router,
    prefix=settings.API_PREFIX,
    tags=["messages"]
)

app.include_router(
    groups_router,
    prefix=settings.API_PREFIX,
    tags=["groups"]
)

# WebSocket роут
app.include_router(
    websocket_router,
    tags=["websocket"]
)

@app.get("/")
async def root():
    return {
        "message": settings.PROJECT_NAME,
        "status": "running",
        "websocket": "ws://localhost:8000/ws?token={jwt}"
    }

@app.get("/health")
async def health_check():
    return {
        "status": "ok",
        "timestamp": datetime.utcnow().isoformat(),
        "uptime": round(time.monotonic() - STARTED_AT, 3)
    }

@app.get("/ws-info")
async def websocket_info():
    """Информация о WebSocket соединениях"""
    from app.websocket.manager import manager
    return {
        "online_users": len(manager.active_connections),
        "users": [user["username"] for user in manager.get_online_users()]
    }

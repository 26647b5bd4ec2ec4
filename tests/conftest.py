# tests/conftest.py
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test_whatsapp_lite.db")
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest
from fastapi.testclient import TestClient

from app import database
from app.main import app
from app.websocket.manager import manager


@pytest.fixture
def client(tmp_path):
    """Клиент с чистой SQLite базой на каждый тест"""
    database.configure_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    manager.active_connections.clear()
    with TestClient(app) as test_client:
        yield test_client
    manager.active_connections.clear()


def register(client, username, password="secret123", **extra):
    response = client.post("/api/register", json={"username": username, "password": password, **extra})
    assert response.status_code == 200, response.text
    return response


def login(client, username, password="secret123"):
    response = client.post("/api/login", json={"username": username, "password": password})
    assert response.status_code == 200, response.text
    return response.json()["token"]


def auth_headers(client, username, password="secret123", **extra):
    """Зарегистрировать пользователя и вернуть заголовки авторизации"""
    register(client, username, password, **extra)
    token = login(client, username, password)
    return {"Authorization": f"Bearer {token}"}


def send_message(client, headers, to_username, text="hi"):
    response = client.post("/api/messages", json={"toUsername": to_username, "text": text}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def set_privacy(client, headers, **settings):
    response = client.post("/api/privacy-settings", json=settings, headers=headers)
    assert response.status_code == 200, response.text
    return response.json()

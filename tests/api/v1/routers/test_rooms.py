"""Unit tests for room and token router endpoints."""

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from livebroker.api.v1.dependency import get_session_gateway
from livebroker.api.v1.errors import app_error_handler
from livebroker.api.v1.routers import rooms, token
from livebroker.domain.live.session import SessionGateway
from livebroker.utils.app_errors import AppError


@pytest.fixture
def test_app(gateway: SessionGateway) -> FastAPI:
    """Create FastAPI test app with the routers, error handler and a real gateway over fakes."""
    app = FastAPI()
    app.dependency_overrides[get_session_gateway] = lambda: gateway
    app.add_exception_handler(AppError, app_error_handler)  # type: ignore[arg-type]
    app.include_router(rooms.router)
    app.include_router(token.router)
    return app


@pytest_asyncio.fixture
async def client(test_app: FastAPI):
    transport = ASGITransport(app=test_app)  # type: ignore[arg-type]
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


class TestCreateRoom:
    """Tests for POST /rooms."""

    async def test_create_room(self, client: AsyncClient):
        # Act
        response = await client.post("/rooms", json={"host_name": "Alice"})

        # Assert
        assert response.status_code == 201
        data = response.json()
        assert data["success"] is True
        results = data["results"]
        assert results["host_name"] == "Alice"
        assert results["host_token"].startswith("token::Alice::")
        assert results["share_url"] == f"http://localhost:5173/stream/{results['room_id']}"
        assert results["server_url"] == "wss://rtc.example.test"

    async def test_invalid_host_name(self, client: AsyncClient):
        response = await client.post("/rooms", json={"host_name": "Alice!"})

        assert response.status_code == 400
        data = response.json()
        assert data["success"] is False
        assert data["errcode"] == "E_INVALID_PARAMS"
        assert data["errmesg"].startswith("Invalid host_name:")
        assert data["erresid"]

    async def test_token_service_unavailable(self, client: AsyncClient, issuer):
        issuer.configured = False

        response = await client.post("/rooms", json={"host_name": "Alice"})

        assert response.status_code == 503
        assert response.json()["errcode"] == "E_DEPENDENCY_UNAVAILABLE"


class TestGetRoom:
    """Tests for GET /rooms/{room_id}."""

    async def test_get_room(self, client: AsyncClient):
        # Arrange
        created = (await client.post("/rooms", json={"host_name": "Alice"})).json()["results"]

        # Act
        response = await client.get(f"/rooms/{created['room_id']}")

        # Assert
        assert response.status_code == 200
        results = response.json()["results"]
        assert results["host_name"] == "Alice"
        assert results["is_active"] is True
        assert results["is_recording"] is False
        assert results["is_known"] is True

    async def test_get_unknown_room_placeholder(self, client: AsyncClient):
        response = await client.get("/rooms/never-created")

        assert response.status_code == 200
        results = response.json()["results"]
        assert results["host_name"] == "Unknown Host"
        assert results["is_known"] is False


class TestEndRoom:
    """Tests for DELETE /rooms/{room_id}."""

    async def test_end_room_twice(self, client: AsyncClient):
        # Arrange
        created = (await client.post("/rooms", json={"host_name": "Alice"})).json()["results"]

        # Act
        first = await client.delete(f"/rooms/{created['room_id']}")
        second = await client.delete(f"/rooms/{created['room_id']}")

        # Assert
        assert first.status_code == 200
        assert second.status_code == 200
        assert first.json()["results"]["message"] == "Room ended"
        assert first.json()["results"]["ended_at"] == second.json()["results"]["ended_at"]

    async def test_end_unknown_room(self, client: AsyncClient):
        response = await client.delete("/rooms/never-created")

        assert response.status_code == 404
        assert response.json()["errcode"] == "E_ROOM_NOT_FOUND"


class TestIssueToken:
    """Tests for POST /token."""

    async def test_viewer_token(self, client: AsyncClient, issuer):
        # Arrange
        created = (await client.post("/rooms", json={"host_name": "Alice"})).json()["results"]

        # Act
        response = await client.post(
            "/token",
            json={"room_name": created["room_id"], "participant_name": "Bob"},
        )

        # Assert
        assert response.status_code == 200
        results = response.json()["results"]
        assert results["is_host"] is False
        assert results["participant_name"] == "Bob"
        assert issuer.issued[-1][2].can_publish is False

    async def test_viewer_token_for_ended_room(self, client: AsyncClient):
        # Arrange
        created = (await client.post("/rooms", json={"host_name": "Alice"})).json()["results"]
        await client.delete(f"/rooms/{created['room_id']}")

        # Act
        response = await client.post(
            "/token",
            json={"room_name": created["room_id"], "participant_name": "Bob"},
        )

        # Assert
        assert response.status_code == 410
        assert response.json()["errcode"] == "E_ROOM_ENDED"

    async def test_host_token(self, client: AsyncClient, issuer):
        response = await client.post(
            "/token",
            json={"room_name": "alice-room", "participant_name": "Alice", "is_host": True},
        )

        assert response.status_code == 200
        assert response.json()["results"]["is_host"] is True
        assert issuer.issued[-1][2].can_publish is True

    async def test_invalid_participant_name(self, client: AsyncClient):
        response = await client.post(
            "/token",
            json={"room_name": "alice-room", "participant_name": ""},
        )

        assert response.status_code == 400
        assert response.json()["errmesg"].startswith("Invalid participant_name:")

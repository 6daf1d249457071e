"""Unit tests for bearer client authentication."""

from unittest.mock import Mock

import pytest
from fastapi import HTTPException

from ratelimit_api.core.auth import authenticate_client, parse_bearer_token, verify_client
from ratelimit_api.core.errors import AuthenticationAppError
from ratelimit_api.services.client_registry import ClientRegistry, DEFAULT_CLIENTS


@pytest.fixture
def registry() -> ClientRegistry:
    return ClientRegistry(DEFAULT_CLIENTS)


def _request_with(registry: ClientRegistry) -> Mock:
    request = Mock()
    request.app.state.client_registry = registry
    return request


class TestParseBearerToken:
    """Test Authorization header parsing."""

    def test_extracts_token(self) -> None:
        assert parse_bearer_token("Bearer client-1") == "client-1"

    def test_trims_whitespace(self) -> None:
        assert parse_bearer_token("Bearer   client-1  ") == "client-1"

    @pytest.mark.parametrize("header", [None, "", "Bearer ", "Bearer    ", "Basic abc", "bearer client-1"])
    def test_rejects_missing_or_malformed(self, header) -> None:
        assert parse_bearer_token(header) is None


class TestAuthenticateClient:
    """Test core client validation logic."""

    def test_accepts_known_client(self, registry) -> None:
        assert authenticate_client("Bearer client-2", registry) == "client-2"

    def test_missing_header(self, registry) -> None:
        with pytest.raises(AuthenticationAppError) as exc_info:
            authenticate_client(None, registry)

        assert exc_info.value.code == "missing_bearer_token"
        assert exc_info.value.message == "Authorization header required"

    def test_unknown_client(self, registry) -> None:
        with pytest.raises(AuthenticationAppError) as exc_info:
            authenticate_client("Bearer client-9", registry)

        assert exc_info.value.code == "invalid_client"
        assert exc_info.value.message == "Invalid client ID"


class TestVerifyClientDependency:
    """Test FastAPI dependency for client verification."""

    @pytest.mark.asyncio
    async def test_returns_client_id(self, registry) -> None:
        client_id = await verify_client(_request_with(registry), authorization="Bearer client-1")

        assert client_id == "client-1"

    @pytest.mark.asyncio
    async def test_raises_401_when_header_missing(self, registry) -> None:
        with pytest.raises(HTTPException) as exc_info:
            await verify_client(_request_with(registry), authorization=None)

        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Authorization header required"
        assert exc_info.value.headers == {"WWW-Authenticate": "Bearer"}

    @pytest.mark.asyncio
    async def test_raises_401_when_client_unknown(self, registry) -> None:
        with pytest.raises(HTTPException) as exc_info:
            await verify_client(_request_with(registry), authorization="Bearer nobody")

        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Invalid client ID"

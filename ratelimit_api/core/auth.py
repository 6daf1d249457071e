"""Bearer token authentication.

Callers identify themselves with ``Authorization: Bearer <client_id>``. The
token is the client id itself and must be present in the client registry.

Design principles:
- Single Responsibility: Only resolves the caller's client id
- Dependency Injection: Used via FastAPI Depends() for loose coupling
- Testable: Pure parsing/validation functions with minimal dependencies
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import Header, HTTPException, Request, status

from ratelimit_api.core.errors import AuthenticationAppError
from ratelimit_api.core.logging import hash_identifier
from ratelimit_api.services.client_registry import ClientRegistry

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


def parse_bearer_token(authorization: str | None) -> str | None:
    """Extract the token from an Authorization header value.

    Examples:
        >>> parse_bearer_token("Bearer client-1")
        'client-1'
        >>> parse_bearer_token("Basic abc") is None
        True
        >>> parse_bearer_token(None) is None
        True
    """
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return None

    token = authorization[len(BEARER_PREFIX):].strip()
    return token or None


def authenticate_client(authorization: str | None, registry: ClientRegistry) -> str:
    """Resolve the caller's client id from the Authorization header.

    Pure validation logic without FastAPI dependencies for easy testing.

    Raises:
        AuthenticationAppError: If the header is missing/malformed or the
            client is not configured.
    """
    client_id = parse_bearer_token(authorization)
    if client_id is None:
        logger.warning(
            "auth.missing_token",
            extra={"authorization_present": authorization is not None},
        )
        raise AuthenticationAppError(
            code="missing_bearer_token",
            message="Authorization header required",
            details={"hint": "Send 'Authorization: Bearer <client id>'"},
        )

    if not registry.is_known(client_id):
        logger.warning(
            "auth.invalid_client",
            extra={"client_hash": hash_identifier(client_id)},
        )
        raise AuthenticationAppError(
            code="invalid_client",
            message="Invalid client ID",
        )

    return client_id


async def verify_client(
    request: Request,
    authorization: Annotated[str | None, Header()] = None,
) -> str:
    """FastAPI dependency returning the authenticated client id.

    Usage:
        @router.get("/protected")
        async def protected(client_id: Annotated[str, Depends(verify_client)]):
            ...

    Raises:
        HTTPException: 401 Unauthorized if authentication fails.
    """
    registry: ClientRegistry = request.app.state.client_registry
    try:
        client_id = authenticate_client(authorization, registry)
    except AuthenticationAppError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=exc.message,
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc

    logger.debug(
        "auth.success",
        extra={"client_hash": hash_identifier(client_id)},
    )
    return client_id

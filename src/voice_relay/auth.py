"""Pre-shared key authentication for REST and WebSocket clients."""

from __future__ import annotations

import hmac
import logging
from typing import Optional

from fastapi import Header, HTTPException, Query, Request, WebSocket, status

from .config import Settings

logger = logging.getLogger(__name__)


def _key_matches(provided: Optional[str], settings: Settings) -> bool:
    expected = (
        settings.api_secret_key.get_secret_value()
        if settings.api_secret_key is not None
        else ""
    )
    if not expected or not provided:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


def require_api_key(
    request: Request,
    x_api_key: Optional[str] = Header(default=None, alias="x-api-key"),
    api_key: Optional[str] = Query(default=None),
) -> None:
    """Reject requests without the configured ``X-API-Key`` / ``api_key``."""

    if not _key_matches(x_api_key or api_key, request.app.state.settings):
        logger.info("Authentication failed: invalid or missing API key")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized: Invalid or missing API key",
        )


def websocket_authorized(websocket: WebSocket, settings: Settings) -> bool:
    """WebSocket clients pass the key as the ``api_key`` query parameter."""

    return _key_matches(websocket.query_params.get("api_key"), settings)


__all__ = ["require_api_key", "websocket_authorized"]

"""Service account credentials for the Google speech clients."""

from __future__ import annotations

import base64
import binascii
import json
import logging
from pathlib import Path
from typing import Any

from google.oauth2 import service_account

from ..config import Settings

logger = logging.getLogger(__name__)

_BASE64_ALPHABET = set(
    "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/="
)


def parse_credentials_json(raw: str) -> dict[str, Any]:
    """Parse inline credentials that may be plain JSON or base64-encoded JSON."""

    text = raw.strip()
    if text and set(text) <= _BASE64_ALPHABET:
        try:
            decoded = base64.b64decode(text).decode("utf-8")
            info = json.loads(decoded)
        except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError):
            logger.debug("Credentials do not appear to be base64 encoded, using as is")
        else:
            if isinstance(info, dict):
                return info
    info = json.loads(text)
    if not isinstance(info, dict):
        raise ValueError("Google credentials must be a JSON object")
    return info


def load_credentials(settings: Settings) -> service_account.Credentials | None:
    """Return explicit credentials, or ``None`` to use application defaults."""

    if settings.google_credentials_json is not None:
        try:
            info = parse_credentials_json(
                settings.google_credentials_json.get_secret_value()
            )
            return service_account.Credentials.from_service_account_info(info)
        except (ValueError, json.JSONDecodeError) as exc:
            logger.error("Error parsing GOOGLE_CREDENTIALS_JSON: %s", exc)
            return None

    credentials_path: Path | None = settings.google_application_credentials
    if credentials_path is None:
        return None
    try:
        resolved_path = Path(credentials_path).expanduser().resolve()
        if not resolved_path.exists():
            logger.warning("Google credentials file %s does not exist", resolved_path)
            return None
        return service_account.Credentials.from_service_account_file(str(resolved_path))
    except (OSError, ValueError) as exc:
        logger.error("Could not load Google credentials from %s: %s", credentials_path, exc)
        return None


__all__ = ["load_credentials", "parse_credentials_json"]

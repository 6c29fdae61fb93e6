"""
Identity service client for the TNT Tag History admin.
Resolves in-game names to account UUIDs and back.
"""
import logging

import requests
from flask import current_app

from .errors import IdentityLookupError
from .utils import is_uuid, normalize_uuid

logger = logging.getLogger(__name__)


def _get_json(url: str) -> dict:
    timeout = current_app.config.get("IDENTITY_TIMEOUT", 10)
    try:
        response = requests.get(url, timeout=timeout)
    except requests.RequestException as e:
        logger.warning("Identity lookup failed for %s: %s", url, e)
        raise IdentityLookupError(f"Identity service unreachable: {e}") from e

    if response.status_code != 200:
        raise IdentityLookupError(f"Identity service returned HTTP {response.status_code}")
    try:
        data = response.json()
    except ValueError as e:
        raise IdentityLookupError("Identity service returned invalid JSON") from e
    if not isinstance(data, dict):
        raise IdentityLookupError("Identity service returned an unexpected payload")
    return data


def lookup_uuid(name: str) -> str:
    """
    Resolve an in-game name to an account UUID.

    Args:
        name: The current in-game name

    Returns:
        The dashed, lowercase UUID

    Raises:
        IdentityLookupError: service unreachable, unknown name, or bad payload
    """
    name = (name or "").strip()
    if not name:
        raise IdentityLookupError("A name is required")

    url = current_app.config["IDENTITY_NAME_URL"].format(name=name)
    data = _get_json(url)
    value = data.get("uuid") or data.get("id")
    if not value or not is_uuid(value):
        raise IdentityLookupError(f"Invalid IGN provided: {name}")
    return normalize_uuid(value)


def lookup_name(uuid: str) -> str:
    """
    Resolve an account UUID to its current in-game name.

    Args:
        uuid: Dashed or undashed UUID

    Returns:
        The current name as reported by the service

    Raises:
        IdentityLookupError: service unreachable, unknown UUID, or bad payload
    """
    if not is_uuid(uuid or ""):
        raise IdentityLookupError(f"Invalid UUID provided: {uuid}")

    url = current_app.config["IDENTITY_PROFILE_URL"].format(uuid=normalize_uuid(uuid).replace("-", ""))
    data = _get_json(url)
    name = data.get("name") or data.get("username")
    if not name:
        raise IdentityLookupError(f"Invalid UUID provided: {uuid}")
    return name

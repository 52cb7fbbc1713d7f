"""
Identity decoding for inbound requests.

Two token formats are accepted:
- x-rh-identity: base64-encoded JSON
  {"identity": {"account_number": "...", "internal": {"org_id": "..."}}}
- Authorization: Bearer <jwt> (debug only). Only the payload segment
  {"account_number": "...", "org_id": "..."} is read; the signature is
  not verified.
"""

import base64
import binascii
import json
from dataclasses import dataclass

MISSING_TOKEN_MESSAGE = "Missing auth token"
MALFORMED_TOKEN_MESSAGE = "Malformed authentication token"
INVALID_BEARER_MESSAGE = "Invalid/Malformed auth token"


class AuthenticationError(Exception):
    """Request identity could not be established."""

    pass


class MissingTokenError(AuthenticationError):
    def __init__(self):
        super().__init__(MISSING_TOKEN_MESSAGE)


class MalformedTokenError(AuthenticationError):
    def __init__(self, message: str = MALFORMED_TOKEN_MESSAGE):
        super().__init__(message)


@dataclass(frozen=True)
class Identity:
    """Verified caller identity."""

    account_number: str
    org_id: str


def decode_segment(segment: str) -> bytes:
    """Decode a base64url segment with or without padding."""
    segment = segment.strip().replace("+", "-").replace("/", "_")
    padded = segment + "=" * (-len(segment) % 4)
    return base64.urlsafe_b64decode(padded)


def _decode_json(segment: str) -> dict:
    try:
        data = json.loads(decode_segment(segment))
    except (binascii.Error, ValueError):
        raise MalformedTokenError()
    if not isinstance(data, dict):
        raise MalformedTokenError()
    return data


def _build_identity(account_number, org_id) -> Identity:
    if account_number in (None, "") or org_id in (None, ""):
        raise MalformedTokenError()
    return Identity(account_number=str(account_number), org_id=str(org_id))


def identity_from_header(value: str | None) -> Identity:
    """Decode the x-rh-identity header."""
    if not value:
        raise MissingTokenError()

    data = _decode_json(value)
    try:
        identity = data["identity"]
        return _build_identity(identity["account_number"], identity["internal"]["org_id"])
    except (KeyError, TypeError):
        raise MalformedTokenError()


def identity_from_bearer(value: str | None) -> Identity:
    """Decode an "Authorization: Bearer <jwt>" header."""
    if not value:
        raise MissingTokenError()

    parts = value.split(" ")
    if len(parts) != 2:
        raise MalformedTokenError(INVALID_BEARER_MESSAGE)

    segments = parts[1].split(".")
    if len(segments) < 2:
        raise MalformedTokenError(INVALID_BEARER_MESSAGE)

    payload = _decode_json(segments[1])
    return _build_identity(payload.get("account_number"), payload.get("org_id"))

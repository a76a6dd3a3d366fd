"""Per-request correlation ID carried through contextvars."""

from __future__ import annotations

import uuid
from contextvars import ContextVar

request_id_var: ContextVar[str] = ContextVar("alma_request_id", default="")

# Longest inbound X-Request-ID we accept verbatim
MAX_REQUEST_ID_LENGTH = 64


def generate_request_id() -> str:
    """Return a new 32-character hex request ID."""
    return uuid.uuid4().hex


def resolve_request_id(incoming: str) -> str:
    """Reuse a caller-supplied ID when it is sane, otherwise mint one."""
    incoming = incoming.strip()
    if incoming and len(incoming) <= MAX_REQUEST_ID_LENGTH and incoming.isprintable():
        return incoming
    return generate_request_id()


def get_request_id() -> str:
    return request_id_var.get()

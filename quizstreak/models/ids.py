"""Identifier generation for stored entities."""

import uuid


def generate_id() -> str:
    """Return a new unique, URL-safe identifier."""
    return uuid.uuid4().hex

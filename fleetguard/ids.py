"""Identifier generation."""

import uuid


def new_id(prefix: str = "id") -> str:
    """Generate a prefixed random identifier, e.g. 'veh_3f9c0a1b2d4e'."""
    return f"{prefix}_{uuid.uuid4().hex[:12]}"

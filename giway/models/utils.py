"""Utility helpers for the models package."""

from __future__ import annotations

import secrets
import string
from typing import Optional
from sqlalchemy.orm import Session

BASE62_ALPHABET = string.digits + string.ascii_uppercase + string.ascii_lowercase


def enum_values(enum_cls) -> list[str]:
    """Persist enum members by value rather than by Python name."""

    return [member.value for member in enum_cls]


def generate_drawing_id(
    session: Optional[Session] = None,
    length: int = 10,
    max_attempts: int = 32,
) -> str:
    """Return a random base62 identifier for a drawing.

    When a session is provided, the helper retries if the generated value is
    already present (or pending) in ``Drawing.id``.
    """

    drawing_cls = None
    if session is not None:
        from .drawing import Drawing

        drawing_cls = Drawing

    for _ in range(max_attempts):
        candidate = "".join(secrets.choice(BASE62_ALPHABET) for _ in range(length))

        if session is not None and drawing_cls is not None:
            if any(
                isinstance(obj, drawing_cls) and obj.id == candidate
                for obj in session.new
            ):
                continue
            if session.get(drawing_cls, candidate) is not None:
                continue

        return candidate

    raise RuntimeError(
        "Unable to generate a unique drawing identifier after multiple attempts"
    )

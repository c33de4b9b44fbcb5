from __future__ import annotations

import uuid


def new_id() -> str:
    """Primary key default for universal tables (UUID4, canonical string form)."""

    return str(uuid.uuid4())

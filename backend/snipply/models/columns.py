"""Column defaults shared by every model."""

import uuid
from datetime import datetime, timezone


def new_id() -> str:
    """Primary keys are UUID4 strings (VARCHAR in the schema)."""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)

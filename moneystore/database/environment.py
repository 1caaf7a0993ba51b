"""Clock and identifier sources injected into the Database."""

import re
import time
from typing import Callable
from uuid import uuid4

from moneystore.validation.schemas import ID_PATTERN


Clock = Callable[[], int]
IdGenerator = Callable[[], str]


def system_clock() -> int:
    """Current time in epoch milliseconds."""
    return time.time_ns() // 1_000_000


def generate_id(prefix: str = "") -> str:
    """
    Generate a collision-resistant primary key, e.g. ``acc_3f2b...``.

    Always matches the primary-key pattern and stays under 100 characters.
    """
    if prefix and not re.fullmatch(ID_PATTERN, prefix):
        raise ValueError(f"Invalid id prefix: {prefix!r}")
    if len(prefix) > 60:
        raise ValueError("Id prefix must be at most 60 characters")
    key = uuid4().hex
    return f"{prefix}_{key}" if prefix else key

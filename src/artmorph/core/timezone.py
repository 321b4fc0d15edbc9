"""UTC time helpers.

Importing this module sets TZ=UTC for the process. All timestamps stored by
the job pipeline are naive UTC datetimes produced by ``utcnow()``; model
timestamp columns declare a plain ``DateTime`` to match.
"""

import os
from datetime import datetime, timezone

os.environ["TZ"] = "UTC"


def utcnow() -> datetime:
    """Return the current UTC time as a naive datetime (database column format)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)

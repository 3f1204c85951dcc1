# Periodic housekeeping run from the startup thread in main.py.
# Reads never depend on it: every interest query applies expiry lazily.
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from .db import session_scope
from .services.interests import expire_stale_interests

logger = logging.getLogger("propswipe.sweepers")


def sweep_expired_interests(db: Optional[Session] = None, now: Optional[datetime] = None) -> int:
    """
    Move every pending interest past its expiry to 'expired'.

    Idempotent. Uses the given Session or opens and closes its own.
    Returns the number of interests transitioned.
    """
    if db is None:
        with session_scope() as own:
            count = expire_stale_interests(own, now)
    else:
        count = expire_stale_interests(db, now)

    logger.debug("sweeper.interests", extra={"expired": count})
    return count

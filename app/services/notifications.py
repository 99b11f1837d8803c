"""
Fire-and-forget user notifications about access changes.

Queuing goes through Celery. A broker failure is logged and swallowed: the
access change itself has already been committed and must not be reported as
failed.
"""

from typing import Iterable

from app.core.config import settings
from app.core.logging import get_logger
from app.models.user import User
from app.mycelery.worker import send_access_change_notice

logger = get_logger(__name__)


def notify_access_changed(user: User, changes: Iterable[str]) -> bool:
    """Queue an access-change email for `user`. Returns whether it was queued."""
    changes = list(changes)
    if not settings.NOTIFICATIONS_ENABLED or not changes:
        return False
    try:
        send_access_change_notice.delay(user.email, user.name or user.email, changes)
    except Exception as e:
        logger.warning(f"Could not queue access change notice for user {user.id}: {e}")
        return False
    return True

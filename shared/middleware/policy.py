"""
shared/middleware/policy.py
Access policy: role checks applied at the top of each mutating operation.

Reads and self-scoped actions (signup, favorite, mark-read on one's own
rows) only need an authenticated user. Everything that changes shared
data (catalog CRUD, broadcasts, notification deletion, user management)
needs ADMIN.
"""

import logging

from shared.exceptions import PolicyDenied
from shared.models.models import User, UserRole

logger = logging.getLogger(__name__)


def is_admin(user: User) -> bool:
    return user.role == UserRole.ADMIN


def ensure_admin(user: User, action: str) -> None:
    """Raise PolicyDenied unless `user` is an administrator."""
    if not is_admin(user):
        logger.info("Policy denied: user %s attempted %s", user.id, action)
        raise PolicyDenied(
            "Only administrators can perform this action.",
            reason=action,
        )

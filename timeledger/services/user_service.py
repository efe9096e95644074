import logging

from timeledger.core.security import hash_password
from timeledger.db.user_store import UserStore
from timeledger.schemas.common import Role


logger = logging.getLogger(__name__)


async def create_admin_if_missing(users: UserStore, password: str) -> bool:
    """Create the ``admin`` account on an empty user collection."""
    if await users.count_users() > 0:
        return False
    await users.create_user("admin", hash_password(password), Role.admin.value)
    logger.warning("Default admin created: username 'admin'. Change its password.")
    return True

import logging

from .documents import new_user
from .enums import UserType

logger = logging.getLogger(__name__)


def init_admin_user(repositories, bcrypt, config):
    """Create the configured administrator if not already created."""
    email = config.get("ADMIN_EMAIL")
    password = config.get("ADMIN_PASSWORD")
    if not email or not password:
        return None

    email = email.lower()
    if repositories.users.find_one({"email": email}):
        return None

    admin = new_user(
        UserType.STAFF.value,
        config["ADMIN_FULLNAME"],
        email,
        bcrypt.generate_password_hash(password).decode("utf-8"),
        config["ADMIN_MOBILE_NUMBER"],
        employee_id=config["ADMIN_EMPLOYEE_ID"],
    )
    admin["isAdmin"] = True
    admin = repositories.users.create(admin)
    logger.info("Administrator %s created", admin["_id"])
    return admin

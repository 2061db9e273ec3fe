from flask_login import UserMixin

from library_backend import login_manager
from library_backend.services import get_services

from .repositories import to_object_id


class User(UserMixin):
    def __init__(self, user_id, fullname, is_admin):
        self.id = user_id
        self.fullname = fullname
        self.is_admin = is_admin

    @classmethod
    def from_document(cls, document):
        return cls(
            str(document["_id"]),
            document["userFullName"],
            bool(document.get("isAdmin", False)),
        )


@login_manager.user_loader
def load_user(user_id):
    # reloaded on every request so a revoked admin flag takes effect at once
    user_oid = to_object_id(user_id)
    if user_oid is None:
        return None
    user_data = get_services().repositories.users.find_one({"_id": user_oid})
    if not user_data:
        return None
    return User.from_document(user_data)

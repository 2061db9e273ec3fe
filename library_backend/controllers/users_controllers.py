from flask import Blueprint
from flask_login import current_user, logout_user

from library_backend.services import get_services
from library_backend.utils.access_policy import (
    admin_or_self_required,
    admin_required,
    is_admin,
    is_self,
)
from library_backend.utils.enums import UserTransactionSet
from library_backend.utils.responses import json_body, success
from library_backend.utils.validators import require_text

users_bp = Blueprint("users", __name__)


@users_bp.route("/getuser/<user_id>")
@admin_or_self_required("user_id", "You can only view your own account!")
def get_user(user_id):
    return success(get_services().users.get_user(user_id))


@users_bp.route("/allmembers")
@admin_required()
def all_members():
    return success(get_services().users.list_users())


@users_bp.route("/updateuser/<user_id>", methods=["PUT"])
@admin_or_self_required("user_id", "You can update only your account!")
def update_user(user_id):
    user = get_services().users.update_user(
        user_id, json_body(), allow_privileged=is_admin(current_user)
    )
    return success(user, "Account has been updated")


@users_bp.route("/deleteuser/<user_id>", methods=["DELETE"])
@admin_or_self_required("user_id", "You can delete only your account!")
def delete_user(user_id):
    deleting_self = is_self(current_user, user_id)
    get_services().users.delete_user(user_id)
    if deleting_self:
        logout_user()
    return success(message="Account has been deleted")


@users_bp.route("/<transaction_id>/move-to-activetransactions", methods=["PUT"])
@admin_required("Only Admin can add a transaction")
def move_to_active_transactions(transaction_id):
    user_id = require_text(json_body(), "userId")
    get_services().lifecycle.file_in_user_set(
        transaction_id, user_id, UserTransactionSet.ACTIVE
    )
    return success(message="Added to Active Transaction")


@users_bp.route("/<transaction_id>/move-to-prevtransactions", methods=["PUT"])
@admin_required("Only Admin can do this")
def move_to_prev_transactions(transaction_id):
    user_id = require_text(json_body(), "userId")
    get_services().lifecycle.file_in_user_set(
        transaction_id, user_id, UserTransactionSet.PREVIOUS
    )
    return success(message="Added to Prev transaction Transaction")

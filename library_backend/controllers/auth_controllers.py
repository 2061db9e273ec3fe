from flask import Blueprint
from flask_login import login_required, login_user, logout_user

from library_backend.services import get_services
from library_backend.services.user_services import public_user
from library_backend.utils.auth import User
from library_backend.utils.responses import json_body, success

auth_bp = Blueprint("auth", __name__)


@auth_bp.route("/register", methods=["POST"])
def register():
    user = get_services().users.register(json_body())
    return success(user, "Registration successful", 201)


@auth_bp.route("/signin", methods=["POST"])
def signin():
    user_data = get_services().users.authenticate(json_body())
    login_user(User.from_document(user_data))  # Sets `current_user`
    return success(public_user(user_data))


@auth_bp.route("/signout", methods=["POST"])
@login_required
def signout():
    logout_user()
    return success(message="Signed out")

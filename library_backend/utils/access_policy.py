"""Authorization predicates shared by every blueprint.

The caller is always the Flask-Login ``current_user`` loaded from the
session; nothing in the request body can grant admin rights.
"""

import functools

from flask_login import current_user

from .errors import PermissionDeniedError


def is_admin(caller):
    return bool(
        caller is not None
        and caller.is_authenticated
        and getattr(caller, "is_admin", False)
    )


def is_self(caller, target_user_id):
    return bool(
        caller is not None
        and caller.is_authenticated
        and str(caller.get_id()) == str(target_user_id)
    )


def is_admin_or_self(caller, target_user_id):
    return is_admin(caller) or is_self(caller, target_user_id)


def require_admin(caller, message="Only an administrator can perform this action"):
    if not is_admin(caller):
        raise PermissionDeniedError(message)


def require_admin_or_self(caller, target_user_id,
                          message="You can only manage your own account"):
    if not is_admin_or_self(caller, target_user_id):
        raise PermissionDeniedError(message)


def admin_required(message="Only an administrator can perform this action"):
    def decorator(view):
        @functools.wraps(view)
        def wrapper(*args, **kwargs):
            require_admin(current_user, message)
            return view(*args, **kwargs)

        return wrapper

    return decorator


def admin_or_self_required(id_arg="user_id",
                           message="You can only manage your own account"):
    def decorator(view):
        @functools.wraps(view)
        def wrapper(*args, **kwargs):
            require_admin_or_self(current_user, kwargs[id_arg], message)
            return view(*args, **kwargs)

        return wrapper

    return decorator

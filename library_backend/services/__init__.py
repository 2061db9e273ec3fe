from flask import current_app

from .consistency_services import ConsistencyEngine
from .transaction_services import TransactionLifecycle
from .user_services import UserService

EXTENSION_KEY = "library"


class LibraryServices:
    """Services sharing one set of repositories, built by the app factory."""

    def __init__(self, repositories, bcrypt, config):
        self.repositories = repositories
        self.consistency = ConsistencyEngine(repositories)
        self.lifecycle = TransactionLifecycle(
            repositories,
            self.consistency,
            allow_reservation_without_availability=config[
                "ALLOW_RESERVATION_WITHOUT_AVAILABILITY"
            ],
        )
        self.users = UserService(repositories, bcrypt)


def get_services():
    return current_app.extensions[EXTENSION_KEY]

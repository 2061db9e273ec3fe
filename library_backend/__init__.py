import logging

from flask import Flask, jsonify
from flask_bcrypt import Bcrypt
from flask_login import LoginManager
from werkzeug.exceptions import HTTPException

from library_backend.services import EXTENSION_KEY, LibraryServices
from library_backend.utils.database import Database
from library_backend.utils.errors import LibraryError
from library_backend.utils.init_roles import init_admin_user
from library_backend.utils.repositories import Repositories
from library_backend.utils.responses import MongoJSONProvider

logger = logging.getLogger(__name__)

login_manager = LoginManager()
bcrypt = Bcrypt()


def create_app(config_object="library_backend.config.Config", mongo_client=None):
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.json = MongoJSONProvider(app)
    configure_logging(app)

    # Initialize extensions
    db = Database()
    db.init_app(app, mongo_client)
    login_manager.init_app(app)
    bcrypt.init_app(app)

    repositories = Repositories.from_database(db)
    repositories.ensure_indexes()
    app.extensions[EXTENSION_KEY] = LibraryServices(repositories, bcrypt, app.config)

    # registers the session user loader
    from library_backend.utils import auth  # noqa: F401

    # Register blueprints per entity kind
    from library_backend.controllers.auth_controllers import auth_bp
    from library_backend.controllers.books_controllers import books_bp
    from library_backend.controllers.categories_controllers import categories_bp
    from library_backend.controllers.transactions_controllers import transactions_bp
    from library_backend.controllers.users_controllers import users_bp

    app.register_blueprint(auth_bp, url_prefix="/api/auth")
    app.register_blueprint(books_bp, url_prefix="/api/books")
    app.register_blueprint(categories_bp, url_prefix="/api/categories")
    app.register_blueprint(transactions_bp, url_prefix="/api/transactions")
    app.register_blueprint(users_bp, url_prefix="/api/users")

    register_error_handlers(app)

    with app.app_context():
        init_admin_user(repositories, bcrypt, app.config)

    return app


def configure_logging(app):
    package_logger = logging.getLogger(__name__)
    package_logger.setLevel(app.config["LOG_LEVEL"])
    if not logging.getLogger().handlers:
        logging.basicConfig(
            format="%(asctime)s %(levelname)s %(name)s: %(message)s"
        )


def register_error_handlers(app):
    @app.errorhandler(LibraryError)
    def handle_library_error(error):
        logger.debug("%s: %s", type(error).__name__, error.message)
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({"status": "fail", "message": error.description}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        logger.exception("Unhandled error")
        return jsonify({"status": "fail", "message": "Internal Server Error"}), 500

from flask_pymongo import PyMongo


class Database:
    def __init__(self, app=None, client=None):
        self.mongo = None
        if app:
            self.init_app(app, client)

    def init_app(self, app, client=None):
        """Initialize the database connection with the Flask app.

        A ready-made client (e.g. mongomock in tests) bypasses Flask-PyMongo
        and the database named by ``MONGO_DBNAME`` is used instead.
        """
        if client is not None:
            self.mongo = client[app.config["MONGO_DBNAME"]]
        else:
            self.mongo = PyMongo(app).db

    def get_collection(self, collection_name):
        """Retrieve a specific collection."""
        if self.mongo is None:
            raise RuntimeError("Database connection is not initialized.")
        return self.mongo[collection_name]

import functools
import logging
from datetime import datetime

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, ReturnDocument, errors

from .errors import ConflictError, InfrastructureError, NotFoundError

logger = logging.getLogger(__name__)


def to_object_id(value):
    """Return ``value`` as an ObjectId, or None when it is not a valid id."""
    if isinstance(value, ObjectId):
        return value
    # ObjectId(None) would mint a fresh id
    if value is None:
        return None
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def store_call(func):
    """Translate pymongo failures into the library's error kinds."""

    @functools.wraps(func)
    def wrapper(self, *args, **kwargs):
        try:
            return func(self, *args, **kwargs)
        except errors.DuplicateKeyError as e:
            raise ConflictError(f"{self.entity_name} already exists") from e
        except errors.PyMongoError as e:
            logger.exception(
                "Store call %s on %s failed", func.__name__, self.collection_name
            )
            raise InfrastructureError(f"Database error: {str(e)}") from e

    return wrapper


class Repository:
    collection_name = None
    entity_name = None
    # (field, unique) pairs created at start-up
    indexes = ()

    def __init__(self, collection):
        self.collection = collection

    @store_call
    def ensure_indexes(self):
        for field, unique in self.indexes:
            self.collection.create_index([(field, ASCENDING)], unique=unique)

    def _object_id(self, id):
        oid = to_object_id(id)
        if oid is None:
            raise NotFoundError(f"{self.entity_name} not found")
        return oid

    @store_call
    def find_by_id(self, id, projection=None):
        document = self.collection.find_one({"_id": self._object_id(id)}, projection)
        if not document:
            raise NotFoundError(f"{self.entity_name} not found")
        return document

    @store_call
    def find_one(self, filter):
        return self.collection.find_one(filter)

    @store_call
    def find(self, filter=None, sort=None, projection=None):
        cursor = self.collection.find(filter or {}, projection)
        if sort:
            cursor = cursor.sort(sort)
        return list(cursor)

    def find_by_ids(self, ids, projection=None):
        object_ids = [oid for oid in map(to_object_id, ids) if oid is not None]
        if not object_ids:
            return []
        return self.find({"_id": {"$in": object_ids}}, projection=projection)

    @store_call
    def create(self, fields):
        now = datetime.now()
        document = dict(fields)
        document.setdefault("createdAt", now)
        document.setdefault("updatedAt", now)
        document["_id"] = self.collection.insert_one(document).inserted_id
        return document

    @store_call
    def update_by_id(self, id, patch):
        document = self.collection.find_one_and_update(
            {"_id": self._object_id(id)},
            {"$set": {**patch, "updatedAt": datetime.now()}},
            return_document=ReturnDocument.AFTER,
        )
        if not document:
            raise NotFoundError(f"{self.entity_name} not found")
        return document

    @store_call
    def find_one_and_update(self, filter, update):
        """Apply ``update`` to the first match of ``filter``; None if no match."""
        update = dict(update)
        update["$set"] = {**update.get("$set", {}), "updatedAt": datetime.now()}
        return self.collection.find_one_and_update(
            filter, update, return_document=ReturnDocument.AFTER
        )

    @store_call
    def update_one(self, filter, update):
        return self.collection.update_one(filter, update)

    @store_call
    def update_many(self, filter, update):
        return self.collection.update_many(filter, update)

    def array_push(self, id, field, value):
        self.apply_update(id, {"$addToSet": {field: value}})

    def array_pull(self, id, field, value):
        self.apply_update(id, {"$pull": {field: value}})

    def apply_update(self, id, update):
        result = self.update_one({"_id": self._object_id(id)}, update)
        if result.matched_count == 0:
            raise NotFoundError(f"{self.entity_name} not found")

    @store_call
    def delete_by_id(self, id):
        document = self.collection.find_one_and_delete({"_id": self._object_id(id)})
        if not document:
            raise NotFoundError(f"{self.entity_name} not found")
        return document


class BookRepository(Repository):
    collection_name = "books"
    entity_name = "Book"


class CategoryRepository(Repository):
    collection_name = "categories"
    entity_name = "Category"
    indexes = (("categoryName", True),)


class UserRepository(Repository):
    collection_name = "users"
    entity_name = "User"
    indexes = (("userFullName", True), ("email", True))


class TransactionRepository(Repository):
    collection_name = "transactions"
    entity_name = "Transaction"
    indexes = (("bookId", False), ("borrowerId", False))


class Repositories:
    """One repository per entity kind, built once per application."""

    def __init__(self, books, categories, users, transactions):
        self.books = books
        self.categories = categories
        self.users = users
        self.transactions = transactions

    @classmethod
    def from_database(cls, db):
        return cls(
            books=BookRepository(db.get_collection(BookRepository.collection_name)),
            categories=CategoryRepository(
                db.get_collection(CategoryRepository.collection_name)
            ),
            users=UserRepository(db.get_collection(UserRepository.collection_name)),
            transactions=TransactionRepository(
                db.get_collection(TransactionRepository.collection_name)
            ),
        )

    def all(self):
        return (self.books, self.categories, self.users, self.transactions)

    def ensure_indexes(self):
        for repository in self.all():
            repository.ensure_indexes()

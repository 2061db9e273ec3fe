import logging

from library_backend.utils.documents import book_status_for, new_book, new_category
from library_backend.utils.enums import UserTransactionSet
from library_backend.utils.errors import (
    ConflictError,
    LibraryError,
    NotFoundError,
    ValidationError,
)
from library_backend.utils.repositories import to_object_id
from library_backend.utils.validators import (
    id_list,
    optional_text,
    reject_unknown_fields,
    require_count,
    require_text,
)

logger = logging.getLogger(__name__)

BOOK_EDITABLE_FIELDS = (
    "bookName",
    "alternateTitle",
    "author",
    "language",
    "publisher",
    "bookCountAvailable",
    "categories",
)


def compensate(steps):
    """Undo already applied steps, newest first.

    A failing step is logged and the rest still run; the caller re-raises the
    error that triggered the rollback.
    """
    for description, action in reversed(steps):
        logger.warning("Compensating: %s", description)
        try:
            action()
        except LibraryError:
            logger.exception("Compensation step failed: %s", description)


class ConsistencyEngine:
    """Keeps the bidirectional references between entities in step.

    Every cross-reference edit is a pair of single-document updates. The
    engine performs the half it is asked for; callers issue both halves.
    """

    def __init__(self, repositories):
        self.books = repositories.books
        self.categories = repositories.categories
        self.users = repositories.users
        self.transactions = repositories.transactions

    # ---- books ----

    def create_book(self, data):
        book_name = require_text(data, "bookName")
        author = require_text(data, "author")
        count = require_count(data, "bookCountAvailable")
        category_ids = self._existing_category_ids(id_list(data, "categories"))

        book = self.books.create(
            new_book(
                book_name,
                author,
                count,
                categories=category_ids,
                alternate_title=optional_text(data, "alternateTitle"),
                language=optional_text(data, "language"),
                publisher=optional_text(data, "publisher"),
            )
        )

        steps = [
            (f"delete book {book['_id']}", lambda: self.books.delete_by_id(book["_id"]))
        ]
        try:
            self._link_categories(book["_id"], category_ids, steps)
        except LibraryError:
            compensate(steps)
            raise

        logger.info("Book %s created in %d categories", book["_id"], len(category_ids))
        return book

    def update_book(self, book_id, data):
        reject_unknown_fields(data, BOOK_EDITABLE_FIELDS)
        book = self.books.find_by_id(book_id)

        patch = {}
        for field in ("bookName", "author"):
            if field in data:
                patch[field] = require_text(data, field)
        for field in ("alternateTitle", "language", "publisher"):
            if field in data:
                patch[field] = optional_text(data, field)
        if "bookCountAvailable" in data:
            count = require_count(data, "bookCountAvailable")
            patch["bookCountAvailable"] = count
            patch["bookStatus"] = book_status_for(count)

        added, removed = [], []
        if "categories" in data:
            category_ids = self._existing_category_ids(id_list(data, "categories"))
            old_ids = book.get("categories", [])
            added = [c for c in category_ids if c not in old_ids]
            removed = [c for c in old_ids if c not in category_ids]
            patch["categories"] = category_ids

        if not patch:
            return book

        updated = self.books.update_by_id(book["_id"], patch)
        restore = {field: book.get(field) for field in patch}
        steps = [
            (
                f"restore book {book['_id']}",
                lambda: self.books.update_by_id(book["_id"], restore),
            )
        ]
        try:
            self._link_categories(book["_id"], added, steps)
            self._unlink_categories(book["_id"], removed, steps)
        except LibraryError:
            compensate(steps)
            raise

        logger.info(
            "Book %s updated (+%d/-%d categories)", book["_id"], len(added), len(removed)
        )
        return updated

    def delete_book(self, book_id):
        book = self.books.find_by_id(book_id)
        category_ids = book.get("categories", [])
        # a dangling category id must not block the delete, so no per-id check
        if category_ids:
            self.categories.update_many(
                {"_id": {"$in": category_ids}}, {"$pull": {"books": book["_id"]}}
            )
        try:
            self.books.delete_by_id(book["_id"])
        except LibraryError:
            compensate(
                [
                    (
                        f"relink book {book['_id']} to its categories",
                        lambda: self.categories.update_many(
                            {"_id": {"$in": category_ids}},
                            {"$addToSet": {"books": book["_id"]}},
                        ),
                    )
                ]
            )
            raise
        logger.info("Book %s deleted", book["_id"])
        return book

    def get_book(self, book_id):
        book = self.books.find_by_id(book_id)
        return self._with_transactions([book])[0]

    def list_books(self):
        return self._with_transactions(self.books.find(sort=[("_id", -1)]))

    def books_by_category(self, category_name):
        category = self.categories.find_one({"categoryName": category_name})
        if not category:
            raise NotFoundError("Category not found")
        category["books"] = self.books.find_by_ids(category.get("books", []))
        return category

    # ---- categories ----

    def add_category(self, data):
        name = require_text(data, "categoryName")
        if self.categories.find_one({"categoryName": name}):
            raise ConflictError(f"Category '{name}' already exists")
        category = self.categories.create(new_category(name))
        logger.info("Category %s created: %s", category["_id"], name)
        return category

    def list_categories(self):
        return self.categories.find(sort=[("categoryName", 1)])

    # ---- book <-> transaction ----

    def link_transaction_to_book(self, transaction_id, book_id):
        self.books.array_push(book_id, "transactions", to_object_id(transaction_id))

    def unlink_transaction_from_book(self, transaction_id, book_id):
        self.books.array_pull(book_id, "transactions", to_object_id(transaction_id))

    # ---- user <-> transaction ----

    def move_user_transaction(self, user_id, transaction_id, from_set=None, to_set=None):
        """Move a transaction id between a user's reference sets.

        Omitting ``to_set`` only removes. Adding always pulls the id from the
        other set, so it never sits in both. Both halves are applied in a
        single update of the user document.
        """
        transaction_id = to_object_id(transaction_id)
        if transaction_id is None:
            raise NotFoundError("Transaction not found")
        from_field = self._set_field(from_set)
        to_field = self._set_field(to_set)
        if from_field is None and to_field is None:
            raise ValidationError("A source or target transaction set is required")
        if from_field == to_field:
            raise ValidationError("Source and target transaction sets must differ")
        if to_field:
            from_field = self._other_set_field(to_field)

        update = {}
        if from_field:
            update["$pull"] = {from_field: transaction_id}
        if to_field:
            update["$addToSet"] = {to_field: transaction_id}
        self.users.apply_update(user_id, update)

    def remove_user_transaction(self, user_id, transaction_id):
        transaction_id = to_object_id(transaction_id)
        self.users.apply_update(
            user_id,
            {
                "$pull": {
                    UserTransactionSet.ACTIVE.value: transaction_id,
                    UserTransactionSet.PREVIOUS.value: transaction_id,
                }
            },
        )

    # ---- availability ----

    def adjust_availability(self, book_id, delta):
        """Change the available-copy count by ``delta`` without going below 0.

        Returns the updated book; raises ConflictError when a decrement would
        make the count negative.
        """
        book_oid = to_object_id(book_id)
        if book_oid is None:
            raise NotFoundError("Book not found")
        filter = {"_id": book_oid}
        if delta < 0:
            filter["bookCountAvailable"] = {"$gte": -delta}

        book = self.books.find_one_and_update(
            filter, {"$inc": {"bookCountAvailable": delta}}
        )
        if book is None:
            book = self.books.find_by_id(book_oid)
            raise ConflictError(f"No copies of '{book['bookName']}' are available")
        return self._sync_book_status(book)

    def _sync_book_status(self, book):
        count = book["bookCountAvailable"]
        status = book_status_for(count)
        if book.get("bookStatus") != status:
            # guarded on the count so a concurrent change syncs its own status
            self.books.update_one(
                {"_id": book["_id"], "bookCountAvailable": count},
                {"$set": {"bookStatus": status}},
            )
            book["bookStatus"] = status
        return book

    # ---- helpers ----

    def _existing_category_ids(self, ids):
        object_ids = []
        for category_id in ids:
            oid = to_object_id(category_id)
            if oid is None:
                raise NotFoundError(f"Category {category_id} not found")
            object_ids.append(oid)

        found = {c["_id"] for c in self.categories.find_by_ids(object_ids, {"_id": 1})}
        missing = [str(oid) for oid in object_ids if oid not in found]
        if missing:
            raise NotFoundError(f"Category {', '.join(missing)} not found")
        return object_ids

    def _link_categories(self, book_id, category_ids, steps):
        for category_id in category_ids:
            self.categories.array_push(category_id, "books", book_id)
            steps.append(
                (
                    f"unlink book {book_id} from category {category_id}",
                    lambda c=category_id: self.categories.array_pull(c, "books", book_id),
                )
            )

    def _unlink_categories(self, book_id, category_ids, steps):
        for category_id in category_ids:
            self.categories.update_one(
                {"_id": category_id}, {"$pull": {"books": book_id}}
            )
            steps.append(
                (
                    f"relink book {book_id} to category {category_id}",
                    lambda c=category_id: self.categories.array_push(c, "books", book_id),
                )
            )

    def _with_transactions(self, books):
        ids = [t for book in books for t in book.get("transactions", [])]
        by_id = {t["_id"]: t for t in self.transactions.find_by_ids(ids)}
        for book in books:
            book["transactions"] = [
                by_id[t] for t in book.get("transactions", []) if t in by_id
            ]
        return books

    @staticmethod
    def _other_set_field(field):
        if field == UserTransactionSet.ACTIVE.value:
            return UserTransactionSet.PREVIOUS.value
        return UserTransactionSet.ACTIVE.value

    @staticmethod
    def _set_field(transaction_set):
        if transaction_set is None:
            return None
        if isinstance(transaction_set, UserTransactionSet):
            return transaction_set.value
        try:
            return UserTransactionSet(transaction_set).value
        except ValueError:
            raise ValidationError(f"Unknown transaction set '{transaction_set}'")

import logging
from datetime import date

from library_backend.utils.documents import new_transaction
from library_backend.utils.enums import (
    TransactionStatus,
    TransactionType,
    UserTransactionSet,
)
from library_backend.utils.errors import (
    ConflictError,
    LibraryError,
    NotFoundError,
    StateError,
    ValidationError,
)
from library_backend.utils.repositories import to_object_id
from library_backend.utils.validators import (
    check_date_range,
    check_enum,
    check_iso_date,
    reject_unknown_fields,
)

from .consistency_services import compensate

logger = logging.getLogger(__name__)

ACTIVE = TransactionStatus.ACTIVE.value
RETURNED = TransactionStatus.RETURNED.value
ISSUE = TransactionType.ISSUE.value

TRANSACTION_EDITABLE_FIELDS = ("fromDate", "toDate", "transactionStatus", "returnDate")


class TransactionLifecycle:
    """Moves a borrow transaction through Active -> Returned (or deletion).

    Each step keeps the book's availability, the book's transaction set and
    the borrower's active/previous sets in line with the transaction status.
    """

    def __init__(self, repositories, engine, allow_reservation_without_availability=True):
        self.books = repositories.books
        self.users = repositories.users
        self.transactions = repositories.transactions
        self.engine = engine
        self.allow_reservation_without_availability = allow_reservation_without_availability

    def issue_or_reserve(self, book_id, borrower_id, transaction_type, from_date, to_date):
        transaction_type = check_enum(transaction_type, "transactionType", TransactionType)
        from_date = check_iso_date(from_date, "fromDate")
        to_date = check_iso_date(to_date, "toDate")
        check_date_range(from_date, to_date)

        book = self.books.find_by_id(book_id)
        borrower = self.users.find_by_id(borrower_id)

        # not atomic with the create below; two concurrent requests can both pass
        existing = self.transactions.find_one(
            {
                "bookId": book["_id"],
                "borrowerId": borrower["_id"],
                "transactionType": transaction_type,
                "transactionStatus": ACTIVE,
            }
        )
        if existing:
            raise ConflictError(
                f"{borrower['userFullName']} already has an active "
                f"{transaction_type.lower()} for '{book['bookName']}'"
            )

        steps = []
        if transaction_type == ISSUE:
            self.engine.adjust_availability(book["_id"], -1)
            steps.append(
                (
                    f"restore a copy of book {book['_id']}",
                    lambda: self.engine.adjust_availability(book["_id"], 1),
                )
            )
        elif (
            not self.allow_reservation_without_availability
            and book["bookCountAvailable"] == 0
        ):
            raise ConflictError(f"No copies of '{book['bookName']}' are available")

        try:
            transaction = self.transactions.create(
                new_transaction(book, borrower, transaction_type, from_date, to_date)
            )
            steps.append(
                (
                    f"delete transaction {transaction['_id']}",
                    lambda: self.transactions.delete_by_id(transaction["_id"]),
                )
            )
            self.engine.link_transaction_to_book(transaction["_id"], book["_id"])
            steps.append(
                (
                    f"unlink transaction {transaction['_id']} from book",
                    lambda: self.engine.unlink_transaction_from_book(
                        transaction["_id"], book["_id"]
                    ),
                )
            )
            self.engine.move_user_transaction(
                borrower["_id"], transaction["_id"], to_set=UserTransactionSet.ACTIVE
            )
        except LibraryError:
            compensate(steps)
            raise

        logger.info(
            "%s %s created: book %s to user %s",
            transaction_type,
            transaction["_id"],
            book["_id"],
            borrower["_id"],
        )
        return transaction

    def return_transaction(self, transaction_id, return_date=None):
        if return_date is not None:
            return_date = check_iso_date(return_date, "returnDate")

        transaction = self.transactions.find_by_id(transaction_id)
        oid = transaction["_id"]
        if transaction["transactionStatus"] != ACTIVE:
            raise StateError("Transaction has already been returned")
        if return_date is None:
            return_date = date.today().isoformat()
        else:
            check_date_range(transaction["fromDate"], return_date, "returnDate")

        transaction = self.transactions.find_one_and_update(
            {"_id": oid, "transactionStatus": ACTIVE},
            {"$set": {"transactionStatus": RETURNED, "returnDate": return_date}},
        )
        if transaction is None:
            raise StateError("Transaction has already been returned")

        steps = [
            (
                f"reopen transaction {oid}",
                lambda: self.transactions.update_by_id(
                    oid, {"transactionStatus": ACTIVE, "returnDate": None}
                ),
            )
        ]
        try:
            if transaction["transactionType"] == ISSUE:
                self._restore_copy(transaction, steps)
            self.engine.move_user_transaction(
                transaction["borrowerId"],
                oid,
                UserTransactionSet.ACTIVE,
                UserTransactionSet.PREVIOUS,
            )
        except LibraryError:
            compensate(steps)
            raise

        logger.info("Transaction %s returned on %s", oid, return_date)
        return transaction

    def update_transaction(self, transaction_id, data):
        reject_unknown_fields(data, TRANSACTION_EDITABLE_FIELDS)
        status = data.get("transactionStatus")
        if "transactionStatus" in data and status != RETURNED:
            raise ValidationError(f"transactionStatus can only be changed to {RETURNED}")
        if "returnDate" in data and status != RETURNED:
            raise ValidationError("returnDate can only be set when returning")
        return_date = None
        if data.get("returnDate") is not None:
            return_date = check_iso_date(data["returnDate"], "returnDate")

        transaction = self.transactions.find_by_id(transaction_id)
        if transaction["transactionStatus"] != ACTIVE:
            raise StateError("Returned transactions cannot be modified")

        dates = {}
        for field in ("fromDate", "toDate"):
            if field in data:
                dates[field] = check_iso_date(data[field], field)
        from_date = dates.get("fromDate", transaction["fromDate"])
        # everything is checked before the first write
        if return_date is not None:
            check_date_range(from_date, return_date, "returnDate")
        if dates:
            check_date_range(from_date, dates.get("toDate", transaction["toDate"]))
            transaction = self.transactions.find_one_and_update(
                {"_id": transaction["_id"], "transactionStatus": ACTIVE},
                {"$set": dates},
            )
            if transaction is None:
                raise StateError("Returned transactions cannot be modified")
            logger.info("Transaction %s dates updated", transaction["_id"])

        if status == RETURNED:
            transaction = self.return_transaction(transaction["_id"], return_date)
        return transaction

    def delete_transaction(self, transaction_id):
        transaction = self.transactions.delete_by_id(transaction_id)
        oid = transaction["_id"]

        # the book or borrower may be gone already; the rest is still cleaned
        try:
            self.engine.unlink_transaction_from_book(oid, transaction["bookId"])
            if (
                transaction["transactionType"] == ISSUE
                and transaction["transactionStatus"] == ACTIVE
            ):
                self.engine.adjust_availability(transaction["bookId"], 1)
        except NotFoundError:
            logger.warning("Book %s of transaction %s not found", transaction["bookId"], oid)
        try:
            self.engine.remove_user_transaction(transaction["borrowerId"], oid)
        except NotFoundError:
            logger.warning(
                "Borrower %s of transaction %s not found", transaction["borrowerId"], oid
            )

        logger.info("Transaction %s deleted", oid)
        return transaction

    def get_transaction(self, transaction_id):
        return self.transactions.find_by_id(transaction_id)

    def file_in_user_set(self, transaction_id, user_id, transaction_set):
        """Put a transaction in the borrower's set matching its status.

        Active transactions belong in ``activeTransactions`` and returned ones
        in ``prevTransactions``; anything else is refused.
        """
        transaction_set = UserTransactionSet(transaction_set)
        transaction = self.transactions.find_by_id(transaction_id)
        user = self.users.find_by_id(user_id)
        if transaction["borrowerId"] != user["_id"]:
            raise ValidationError("Transaction does not belong to this user")

        expected = ACTIVE if transaction_set == UserTransactionSet.ACTIVE else RETURNED
        if transaction["transactionStatus"] != expected:
            raise StateError(
                f"A {transaction['transactionStatus']} transaction cannot be "
                f"filed under {transaction_set.value}"
            )

        self.engine.move_user_transaction(
            user["_id"], transaction["_id"], to_set=transaction_set
        )
        logger.info(
            "Transaction %s filed under %s of user %s",
            transaction["_id"],
            transaction_set.value,
            user["_id"],
        )
        return transaction

    def list_transactions(self, borrower_id=None, book_id=None, status=None):
        filter = {}
        if borrower_id:
            filter["borrowerId"] = self._object_id(borrower_id, "User")
        if book_id:
            filter["bookId"] = self._object_id(book_id, "Book")
        if status:
            filter["transactionStatus"] = check_enum(
                status, "transactionStatus", TransactionStatus
            )
        return self.transactions.find(filter, sort=[("_id", -1)])

    def _restore_copy(self, transaction, steps):
        try:
            self.engine.adjust_availability(transaction["bookId"], 1)
        except NotFoundError:
            logger.warning(
                "Book %s of transaction %s not found, availability not restored",
                transaction["bookId"],
                transaction["_id"],
            )
            return
        steps.append(
            (
                f"take back a copy of book {transaction['bookId']}",
                lambda: self.engine.adjust_availability(transaction["bookId"], -1),
            )
        )

    @staticmethod
    def _object_id(value, entity_name="Transaction"):
        oid = to_object_id(value)
        if oid is None:
            raise NotFoundError(f"{entity_name} not found")
        return oid

import pytest
from bson import ObjectId

from library_backend.services.transaction_services import TransactionLifecycle
from library_backend.utils.errors import (
    ConflictError,
    InfrastructureError,
    NotFoundError,
    StateError,
    ValidationError,
)


def issue(services, book, user, transaction_type="Issue",
          from_date="2024-01-01", to_date="2024-01-15"):
    return services.lifecycle.issue_or_reserve(
        str(book["_id"]), str(user["_id"]), transaction_type, from_date, to_date
    )


class TestIssueOrReserve:
    def test_issue_links_everything(self, services, repositories, dune, member):
        transaction = issue(services, dune, member)

        assert transaction["transactionStatus"] == "Active"
        assert transaction["bookName"] == "Dune"
        assert transaction["borrowerName"] == member["userFullName"]
        assert transaction["returnDate"] is None

        book = repositories.books.find_by_id(dune["_id"])
        assert book["bookCountAvailable"] == 1
        assert book["transactions"] == [transaction["_id"]]

        user = repositories.users.find_by_id(member["_id"])
        assert user["activeTransactions"] == [transaction["_id"]]
        assert user["prevTransactions"] == []

    def test_last_copy_marks_book_unavailable(self, services, repositories, dune, member, other_member):
        issue(services, dune, member)
        issue(services, dune, other_member)

        book = repositories.books.find_by_id(dune["_id"])
        assert book["bookCountAvailable"] == 0
        assert book["bookStatus"] == "Unavailable"

    def test_issue_without_copies_conflicts(self, services, repositories, member):
        book = services.consistency.create_book(
            {"bookName": "Emma", "author": "Austen", "bookCountAvailable": 0}
        )
        with pytest.raises(ConflictError):
            issue(services, book, member)

        assert repositories.transactions.find() == []
        assert repositories.users.find_by_id(member["_id"])["activeTransactions"] == []

    def test_reservation_allowed_without_copies(self, services, repositories, member):
        book = services.consistency.create_book(
            {"bookName": "Emma", "author": "Austen", "bookCountAvailable": 0}
        )
        transaction = issue(services, book, member, "Reservation")

        assert transaction["transactionType"] == "Reservation"
        assert repositories.books.find_by_id(book["_id"])["bookCountAvailable"] == 0

    def test_reservation_can_require_copies(self, repositories, services, member):
        lifecycle = TransactionLifecycle(
            repositories,
            services.consistency,
            allow_reservation_without_availability=False,
        )
        book = services.consistency.create_book(
            {"bookName": "Emma", "author": "Austen", "bookCountAvailable": 0}
        )
        with pytest.raises(ConflictError):
            lifecycle.issue_or_reserve(
                book["_id"], member["_id"], "Reservation", "2024-01-01", "2024-01-02"
            )

    def test_duplicate_active_issue(self, services, dune, member):
        issue(services, dune, member)
        with pytest.raises(ConflictError):
            issue(services, dune, member)

    @pytest.mark.parametrize(
        "transaction_type, from_date, to_date",
        [
            ("Loan", "2024-01-01", "2024-01-15"),
            ("Issue", "01/01/2024", "2024-01-15"),
            ("Issue", "2024-01-15", "2024-01-01"),
            ("Issue", None, "2024-01-15"),
        ],
    )
    def test_invalid_input(self, services, dune, member, transaction_type, from_date, to_date):
        with pytest.raises(ValidationError):
            issue(services, dune, member, transaction_type, from_date, to_date)

    def test_unknown_book_or_borrower(self, services, dune, member):
        with pytest.raises(NotFoundError):
            services.lifecycle.issue_or_reserve(
                str(ObjectId()), member["_id"], "Issue", "2024-01-01", "2024-01-02"
            )
        with pytest.raises(NotFoundError):
            services.lifecycle.issue_or_reserve(
                dune["_id"], str(ObjectId()), "Issue", "2024-01-01", "2024-01-02"
            )

    def test_failure_after_decrement_is_compensated(self, services, repositories, dune, member, monkeypatch):
        def unavailable(*args, **kwargs):
            raise InfrastructureError("Database error: timed out")

        monkeypatch.setattr(services.consistency, "move_user_transaction", unavailable)

        with pytest.raises(InfrastructureError):
            issue(services, dune, member)

        book = repositories.books.find_by_id(dune["_id"])
        assert book["bookCountAvailable"] == 2
        assert book["transactions"] == []
        assert repositories.transactions.find() == []


class TestReturnTransaction:
    def test_return_moves_references_and_restores_copy(self, services, repositories, dune, member):
        transaction = issue(services, dune, member)

        returned = services.lifecycle.return_transaction(
            str(transaction["_id"]), "2024-01-10"
        )

        assert returned["transactionStatus"] == "Returned"
        assert returned["returnDate"] == "2024-01-10"
        assert repositories.books.find_by_id(dune["_id"])["bookCountAvailable"] == 2
        user = repositories.users.find_by_id(member["_id"])
        assert transaction["_id"] not in user["activeTransactions"]
        assert user["prevTransactions"] == [transaction["_id"]]

    def test_second_return_fails(self, services, repositories, dune, member):
        transaction = issue(services, dune, member)
        services.lifecycle.return_transaction(transaction["_id"], "2024-01-10")

        with pytest.raises(StateError):
            services.lifecycle.return_transaction(transaction["_id"], "2024-01-11")
        assert repositories.books.find_by_id(dune["_id"])["bookCountAvailable"] == 2

    def test_returning_reservation_leaves_count(self, services, repositories, dune, member):
        transaction = issue(services, dune, member, "Reservation")
        services.lifecycle.return_transaction(transaction["_id"])

        assert repositories.books.find_by_id(dune["_id"])["bookCountAvailable"] == 2

    def test_return_date_defaults_to_today(self, services, dune, member):
        transaction = issue(services, dune, member)
        returned = services.lifecycle.return_transaction(transaction["_id"])
        assert returned["returnDate"]

    def test_unknown_transaction(self, services):
        with pytest.raises(NotFoundError):
            services.lifecycle.return_transaction(str(ObjectId()), "2024-01-10")

    def test_book_deleted_meanwhile(self, services, repositories, dune, member):
        transaction = issue(services, dune, member)
        services.consistency.delete_book(dune["_id"])

        returned = services.lifecycle.return_transaction(transaction["_id"], "2024-01-10")

        assert returned["transactionStatus"] == "Returned"
        user = repositories.users.find_by_id(member["_id"])
        assert user["prevTransactions"] == [transaction["_id"]]


class TestUpdateTransaction:
    def test_dates_can_change_while_active(self, services, dune, member):
        transaction = issue(services, dune, member)
        updated = services.lifecycle.update_transaction(
            transaction["_id"], {"toDate": "2024-02-01"}
        )
        assert updated["toDate"] == "2024-02-01"

    def test_date_range_checked_against_stored_dates(self, services, dune, member):
        transaction = issue(services, dune, member)
        with pytest.raises(ValidationError):
            services.lifecycle.update_transaction(
                transaction["_id"], {"toDate": "2023-12-01"}
            )

    def test_other_fields_rejected(self, services, dune, member):
        transaction = issue(services, dune, member)
        for patch in (
            {"bookId": str(ObjectId())},
            {"borrowerName": "Someone"},
            {"transactionStatus": "Active"},
            {"returnDate": "2024-01-05"},
        ):
            with pytest.raises(ValidationError):
                services.lifecycle.update_transaction(transaction["_id"], patch)

    def test_status_change_goes_through_return(self, services, repositories, dune, member):
        transaction = issue(services, dune, member)
        updated = services.lifecycle.update_transaction(
            transaction["_id"],
            {"transactionStatus": "Returned", "returnDate": "2024-01-09"},
        )

        assert updated["transactionStatus"] == "Returned"
        assert updated["returnDate"] == "2024-01-09"
        assert repositories.books.find_by_id(dune["_id"])["bookCountAvailable"] == 2
        user = repositories.users.find_by_id(member["_id"])
        assert user["prevTransactions"] == [transaction["_id"]]

    def test_returned_transaction_is_frozen(self, services, dune, member):
        transaction = issue(services, dune, member)
        services.lifecycle.return_transaction(transaction["_id"], "2024-01-10")
        with pytest.raises(StateError):
            services.lifecycle.update_transaction(
                transaction["_id"], {"toDate": "2024-02-01"}
            )


class TestDeleteTransaction:
    def test_delete_active_issue_cleans_all_references(self, services, repositories, dune, member):
        transaction = issue(services, dune, member)

        services.lifecycle.delete_transaction(str(transaction["_id"]))

        book = repositories.books.find_by_id(dune["_id"])
        assert book["transactions"] == []
        assert book["bookCountAvailable"] == 2
        user = repositories.users.find_by_id(member["_id"])
        assert user["activeTransactions"] == []
        assert user["prevTransactions"] == []
        with pytest.raises(NotFoundError):
            services.lifecycle.get_transaction(transaction["_id"])

    def test_delete_returned_issue_keeps_count(self, services, repositories, dune, member):
        transaction = issue(services, dune, member)
        services.lifecycle.return_transaction(transaction["_id"], "2024-01-10")

        services.lifecycle.delete_transaction(transaction["_id"])

        assert repositories.books.find_by_id(dune["_id"])["bookCountAvailable"] == 2
        assert repositories.users.find_by_id(member["_id"])["prevTransactions"] == []

    def test_delete_unknown(self, services):
        with pytest.raises(NotFoundError):
            services.lifecycle.delete_transaction(str(ObjectId()))


class TestListTransactions:
    def test_newest_first_and_filters(self, services, dune, member, other_member):
        first = issue(services, dune, member)
        second = issue(services, dune, other_member, "Reservation")
        services.lifecycle.return_transaction(first["_id"], "2024-01-05")

        everything = services.lifecycle.list_transactions()
        assert [t["_id"] for t in everything] == [second["_id"], first["_id"]]

        mine = services.lifecycle.list_transactions(borrower_id=str(member["_id"]))
        assert [t["_id"] for t in mine] == [first["_id"]]

        active = services.lifecycle.list_transactions(status="Active")
        assert [t["_id"] for t in active] == [second["_id"]]

    def test_bad_status_filter(self, services):
        with pytest.raises(ValidationError):
            services.lifecycle.list_transactions(status="Lost")


class TestDateChecks:
    def test_bad_return_date_leaves_dates_untouched(self, services, repositories, dune, member):
        transaction = issue(services, dune, member)
        with pytest.raises(ValidationError):
            services.lifecycle.update_transaction(
                transaction["_id"],
                {
                    "toDate": "2024-02-01",
                    "transactionStatus": "Returned",
                    "returnDate": "bogus",
                },
            )

        stored = repositories.transactions.find_by_id(transaction["_id"])
        assert stored["toDate"] == "2024-01-15"
        assert stored["transactionStatus"] == "Active"

    def test_return_before_loan_start_is_rejected(self, services, repositories, dune, member):
        transaction = issue(services, dune, member)
        with pytest.raises(ValidationError):
            services.lifecycle.return_transaction(transaction["_id"], "2023-12-31")
        with pytest.raises(ValidationError):
            services.lifecycle.update_transaction(
                transaction["_id"],
                {"fromDate": "2024-01-05", "transactionStatus": "Returned", "returnDate": "2024-01-03"},
            )

        stored = repositories.transactions.find_by_id(transaction["_id"])
        assert stored["transactionStatus"] == "Active"
        assert stored["fromDate"] == "2024-01-01"
        assert repositories.books.find_by_id(dune["_id"])["bookCountAvailable"] == 1

    def test_return_on_loan_start_is_fine(self, services, dune, member):
        transaction = issue(services, dune, member)
        returned = services.lifecycle.return_transaction(transaction["_id"], "2024-01-01")
        assert returned["returnDate"] == "2024-01-01"


class TestFileInUserSet:
    def test_returned_transaction_stays_in_previous(self, services, repositories, dune, member):
        transaction = issue(services, dune, member)
        services.lifecycle.return_transaction(transaction["_id"], "2024-01-10")

        with pytest.raises(StateError):
            services.lifecycle.file_in_user_set(
                transaction["_id"], member["_id"], "activeTransactions"
            )

        user = repositories.users.find_by_id(member["_id"])
        assert user["activeTransactions"] == []
        assert user["prevTransactions"] == [transaction["_id"]]

    def test_misfiled_transaction_is_moved_back(self, services, repositories, dune, member):
        transaction = issue(services, dune, member)
        services.lifecycle.return_transaction(transaction["_id"], "2024-01-10")
        repositories.users.apply_update(
            member["_id"], {"$addToSet": {"activeTransactions": transaction["_id"]}}
        )

        services.lifecycle.file_in_user_set(
            transaction["_id"], member["_id"], "prevTransactions"
        )

        user = repositories.users.find_by_id(member["_id"])
        assert user["activeTransactions"] == []
        assert user["prevTransactions"] == [transaction["_id"]]

    def test_other_borrower_is_refused(self, services, dune, member, other_member):
        transaction = issue(services, dune, member)
        with pytest.raises(ValidationError):
            services.lifecycle.file_in_user_set(
                transaction["_id"], other_member["_id"], "activeTransactions"
            )

    def test_unknown_transaction(self, services, member):
        with pytest.raises(NotFoundError):
            services.lifecycle.file_in_user_set(
                ObjectId(), member["_id"], "activeTransactions"
            )

from flask import Blueprint, request

from library_backend.services import get_services
from library_backend.utils.access_policy import admin_required
from library_backend.utils.responses import json_body, success

transactions_bp = Blueprint("transactions", __name__)


@transactions_bp.route("/add-transaction", methods=["POST"])
@admin_required("You are not allowed to add a Transaction")
def add_transaction():
    data = json_body()
    transaction = get_services().lifecycle.issue_or_reserve(
        data.get("bookId"),
        data.get("borrowerId"),
        data.get("transactionType"),
        data.get("fromDate"),
        data.get("toDate"),
    )
    return success(transaction, "Transaction added successfully", 201)


@transactions_bp.route("/all-transactions")
@admin_required()
def all_transactions():
    transactions = get_services().lifecycle.list_transactions(
        borrower_id=request.args.get("borrowerId"),
        book_id=request.args.get("bookId"),
        status=request.args.get("status"),
    )
    return success(transactions)


@transactions_bp.route("/<transaction_id>")
@admin_required()
def get_transaction(transaction_id):
    return success(get_services().lifecycle.get_transaction(transaction_id))


@transactions_bp.route("/return-transaction/<transaction_id>", methods=["PUT"])
@admin_required("You are not allowed to return a Transaction")
def return_transaction(transaction_id):
    transaction = get_services().lifecycle.return_transaction(
        transaction_id, json_body().get("returnDate")
    )
    return success(transaction, "Transaction returned successfully")


@transactions_bp.route("/update-transaction/<transaction_id>", methods=["PUT"])
@admin_required("You are not allowed to update a Transaction")
def update_transaction(transaction_id):
    transaction = get_services().lifecycle.update_transaction(
        transaction_id, json_body()
    )
    return success(transaction, "Transaction details updated successfully")


@transactions_bp.route("/remove-transaction/<transaction_id>", methods=["DELETE"])
@admin_required("You dont have permission to delete a transaction!")
def remove_transaction(transaction_id):
    get_services().lifecycle.delete_transaction(transaction_id)
    return success(message="Transaction deleted successfully")

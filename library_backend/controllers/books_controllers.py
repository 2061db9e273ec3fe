from flask import Blueprint, request

from library_backend.services import get_services
from library_backend.utils.access_policy import admin_required
from library_backend.utils.errors import ValidationError
from library_backend.utils.responses import json_body, success

books_bp = Blueprint("books", __name__)


@books_bp.route("/allbooks")
def all_books():
    return success(get_services().consistency.list_books())


@books_bp.route("/getbook/<book_id>")
def get_book(book_id):
    return success(get_services().consistency.get_book(book_id))


# category with its books
@books_bp.route("/", strict_slashes=False)
def books_by_category():
    category = request.args.get("category")
    if not category:
        raise ValidationError("category query parameter is required")
    return success(get_services().consistency.books_by_category(category))


@books_bp.route("/addbook", methods=["POST"])
@admin_required("You don't have permission to add a book!")
def add_book():
    book = get_services().consistency.create_book(json_body())
    return success(book, "Book added successfully", 201)


@books_bp.route("/updatebook/<book_id>", methods=["PUT"])
@admin_required("You don't have permission to update a book!")
def update_book(book_id):
    book = get_services().consistency.update_book(book_id, json_body())
    return success(book, "Book details updated successfully")


@books_bp.route("/removebook/<book_id>", methods=["DELETE"])
@admin_required("You don't have permission to delete a book!")
def remove_book(book_id):
    get_services().consistency.delete_book(book_id)
    return success(message="Book has been deleted")

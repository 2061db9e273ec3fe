"""Constructors for the documents stored in each collection.

Each function returns a plain dict with every field of the entity filled in,
so a stored document never depends on which optional fields a caller sent.
"""

from .enums import BookStatus, TransactionStatus


def book_status_for(count):
    if count > 0:
        return BookStatus.AVAILABLE.value
    return BookStatus.UNAVAILABLE.value


def new_book(book_name, author, book_count_available, categories=(),
             alternate_title="", language="", publisher=""):
    return {
        "bookName": book_name,
        "alternateTitle": alternate_title or "",
        "author": author,
        "language": language or "",
        "publisher": publisher or "",
        "bookCountAvailable": book_count_available,
        "bookStatus": book_status_for(book_count_available),
        "categories": list(categories),
        "transactions": [],
    }


def new_category(category_name):
    return {"categoryName": category_name, "books": []}


def new_user(user_type, user_full_name, email, password_hash, mobile_number,
             admission_id=None, employee_id=None, age=None, gender=None,
             dob=None, address=""):
    return {
        "userType": user_type,
        "userFullName": user_full_name,
        "admissionId": admission_id,
        "employeeId": employee_id,
        "age": age,
        "gender": gender,
        "dob": dob,
        "address": address or "",
        "mobileNumber": mobile_number,
        "photo": "",
        "email": email,
        "password": password_hash,
        "points": 0,
        "isAdmin": False,
        "activeTransactions": [],
        "prevTransactions": [],
    }


def new_transaction(book, borrower, transaction_type, from_date, to_date):
    # names are copied so history still reads after a book or user changes
    return {
        "bookId": book["_id"],
        "borrowerId": borrower["_id"],
        "bookName": book["bookName"],
        "borrowerName": borrower["userFullName"],
        "transactionType": transaction_type,
        "fromDate": from_date,
        "toDate": to_date,
        "returnDate": None,
        "transactionStatus": TransactionStatus.ACTIVE.value,
    }

from enum import Enum


class BookStatus(Enum):
    AVAILABLE = "Available"
    UNAVAILABLE = "Unavailable"


class UserType(Enum):
    STUDENT = "Student"
    STAFF = "Staff"


class TransactionType(Enum):
    ISSUE = "Issue"
    RESERVATION = "Reservation"


class TransactionStatus(Enum):
    ACTIVE = "Active"
    RETURNED = "Returned"


class UserTransactionSet(Enum):
    ACTIVE = "activeTransactions"
    PREVIOUS = "prevTransactions"

import mongomock
import pytest

from library_backend import create_app
from library_backend.config import TestConfig
from library_backend.services import EXTENSION_KEY

ADMIN_CREDENTIALS = {
    "employeeId": TestConfig.ADMIN_EMPLOYEE_ID,
    "password": TestConfig.ADMIN_PASSWORD,
}


def student_data(name="Jane Reader", admission_id="ADM1001", email=None):
    return {
        "userType": "Student",
        "userFullName": name,
        "admissionId": admission_id,
        "email": email or f"{admission_id.lower()}@library.test",
        "password": "secret123",
        "mobileNumber": "5551234567",
    }


@pytest.fixture
def app():
    """A fresh application on an in-memory database for each test."""
    return create_app(TestConfig, mongo_client=mongomock.MongoClient())


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def services(app):
    return app.extensions[EXTENSION_KEY]


@pytest.fixture
def repositories(services):
    return services.repositories


@pytest.fixture
def admin_client(app):
    client = app.test_client()
    response = client.post("/api/auth/signin", json=ADMIN_CREDENTIALS)
    assert response.status_code == 200
    return client


@pytest.fixture
def member(services):
    return services.users.register(student_data())


@pytest.fixture
def other_member(services):
    return services.users.register(
        student_data(name="Sam Borrower", admission_id="ADM1002")
    )


@pytest.fixture
def member_client(app, member):
    client = app.test_client()
    response = client.post(
        "/api/auth/signin",
        json={"admissionId": member["admissionId"], "password": "secret123"},
    )
    assert response.status_code == 200
    return client


@pytest.fixture
def fiction(services):
    return services.consistency.add_category({"categoryName": "Fiction"})


@pytest.fixture
def science(services):
    return services.consistency.add_category({"categoryName": "Science"})


@pytest.fixture
def dune(services, fiction):
    return services.consistency.create_book(
        {
            "bookName": "Dune",
            "author": "Herbert",
            "bookCountAvailable": 2,
            "categories": [str(fiction["_id"])],
        }
    )

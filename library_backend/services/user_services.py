import logging

from library_backend.utils.documents import new_user
from library_backend.utils.enums import UserTransactionSet, UserType
from library_backend.utils.errors import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from library_backend.utils.validators import (
    check_enum,
    optional_text,
    reject_unknown_fields,
    require_text,
)

logger = logging.getLogger(__name__)

PROFILE_FIELDS = (
    "userType",
    "userFullName",
    "admissionId",
    "employeeId",
    "age",
    "gender",
    "dob",
    "address",
    "mobileNumber",
    "photo",
    "email",
    "password",
)
PRIVILEGED_FIELDS = ("isAdmin", "points")
MIN_PASSWORD_LENGTH = 6


def public_user(user):
    return {key: value for key, value in user.items() if key != "password"}


class UserService:
    def __init__(self, repositories, bcrypt):
        self.users = repositories.users
        self.transactions = repositories.transactions
        self.bcrypt = bcrypt

    def register(self, data):
        user_type = check_enum(data.get("userType"), "userType", UserType)
        full_name = require_text(data, "userFullName")
        email = require_text(data, "email", max_length=50).lower()
        password = self._check_password(data.get("password"))
        mobile_number = self._check_mobile_number(data.get("mobileNumber"))
        admission_id, employee_id = self._check_member_ids(user_type, data)

        self._ensure_unique(
            {
                "userFullName": full_name,
                "email": email,
                "admissionId": admission_id,
                "employeeId": employee_id,
            }
        )

        user = self.users.create(
            new_user(
                user_type,
                full_name,
                email,
                self._hash(password),
                mobile_number,
                admission_id=admission_id,
                employee_id=employee_id,
                age=self._check_age(data.get("age")),
                gender=optional_text(data, "gender", default=None),
                dob=optional_text(data, "dob", default=None),
                address=optional_text(data, "address"),
            )
        )
        logger.info("User %s registered as %s", user["_id"], user_type)
        return public_user(user)

    def authenticate(self, data):
        """Return the user matching the admission/employee id and password."""
        admission_id = data.get("admissionId")
        employee_id = data.get("employeeId")
        if admission_id:
            user = self.users.find_one({"admissionId": admission_id})
        elif employee_id:
            user = self.users.find_one({"employeeId": employee_id})
        else:
            raise ValidationError("admissionId or employeeId is required")

        if not user:
            raise NotFoundError("User not found")
        password = data.get("password")
        if not isinstance(password, str) or not self.bcrypt.check_password_hash(
            user["password"], password
        ):
            raise ValidationError("Wrong Password")
        return user

    def get_user(self, user_id):
        user = self.users.find_by_id(user_id)
        for field in (UserTransactionSet.ACTIVE.value, UserTransactionSet.PREVIOUS.value):
            user[field] = self.transactions.find_by_ids(user.get(field, []))
        return public_user(user)

    def list_users(self):
        return [
            public_user(user)
            for user in self.users.find(sort=[("_id", -1)], projection={"password": 0})
        ]

    def update_user(self, user_id, data, allow_privileged=False):
        reject_unknown_fields(data, PROFILE_FIELDS + PRIVILEGED_FIELDS)
        if not allow_privileged and any(field in data for field in PRIVILEGED_FIELDS):
            raise PermissionDeniedError("Only an administrator can change isAdmin or points")

        user = self.users.find_by_id(user_id)
        patch = {}
        if "userType" in data:
            patch["userType"] = check_enum(data["userType"], "userType", UserType)
        if "userFullName" in data:
            patch["userFullName"] = require_text(data, "userFullName")
        if "email" in data:
            patch["email"] = require_text(data, "email", max_length=50).lower()
        if "password" in data:
            patch["password"] = self._hash(self._check_password(data["password"]))
        if "mobileNumber" in data:
            patch["mobileNumber"] = self._check_mobile_number(data["mobileNumber"])
        if "age" in data:
            patch["age"] = self._check_age(data["age"])
        for field in ("gender", "dob", "address", "photo"):
            if field in data:
                patch[field] = optional_text(data, field)
        for field in ("admissionId", "employeeId"):
            if field in data:
                patch[field] = self._check_member_id(data[field], field)
        if "isAdmin" in data:
            if not isinstance(data["isAdmin"], bool):
                raise ValidationError("isAdmin must be a boolean")
            patch["isAdmin"] = data["isAdmin"]
        if "points" in data:
            points = data["points"]
            if isinstance(points, bool) or not isinstance(points, int) or points < 0:
                raise ValidationError("points must be a non-negative integer")
            patch["points"] = points

        merged = {**user, **patch}
        self._check_member_ids(merged["userType"], merged)
        self._ensure_unique(
            {
                field: patch[field]
                for field in ("userFullName", "email", "admissionId", "employeeId")
                if field in patch
            },
            exclude_id=user["_id"],
        )

        if not patch:
            return public_user(user)
        updated = self.users.update_by_id(user["_id"], patch)
        logger.info("User %s updated: %s", user["_id"], ", ".join(sorted(patch)))
        return public_user(updated)

    def delete_user(self, user_id):
        user = self.users.find_by_id(user_id)
        if user.get(UserTransactionSet.ACTIVE.value):
            raise ConflictError("Users with active transactions cannot be deleted")
        self.users.delete_by_id(user["_id"])
        logger.info("User %s deleted", user["_id"])

    def _hash(self, password):
        return self.bcrypt.generate_password_hash(password).decode("utf-8")

    def _ensure_unique(self, fields, exclude_id=None):
        clauses = [{field: value} for field, value in fields.items() if value]
        if not clauses:
            return
        filter = {"$or": clauses}
        if exclude_id is not None:
            filter["_id"] = {"$ne": exclude_id}
        existing = self.users.find_one(filter)
        if existing:
            taken = [f for f, v in fields.items() if v and existing.get(f) == v]
            raise ConflictError(f"User with this {', '.join(taken)} already exists")

    def _check_member_ids(self, user_type, data):
        admission_id = self._check_member_id(data.get("admissionId"), "admissionId")
        employee_id = self._check_member_id(data.get("employeeId"), "employeeId")
        if user_type == UserType.STUDENT.value and not admission_id:
            raise ValidationError("admissionId is required for students")
        if user_type == UserType.STAFF.value and not employee_id:
            raise ValidationError("employeeId is required for staff")
        return admission_id, employee_id

    @staticmethod
    def _check_member_id(value, field):
        if value is None or value == "":
            return None
        if not isinstance(value, str) or not 3 <= len(value.strip()) <= 15:
            raise ValidationError(f"{field} must be 3 to 15 characters")
        return value.strip()

    @staticmethod
    def _check_password(password):
        if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"password must be at least {MIN_PASSWORD_LENGTH} characters"
            )
        return password

    @staticmethod
    def _check_mobile_number(value):
        if isinstance(value, int) and not isinstance(value, bool):
            value = str(value)
        if not isinstance(value, str) or not value.strip().lstrip("+").isdigit():
            raise ValidationError("mobileNumber must contain only digits")
        return value.strip()

    @staticmethod
    def _check_age(value):
        if value is None:
            return None
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ValidationError("age must be a non-negative integer")
        return value


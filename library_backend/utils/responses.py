from bson import ObjectId
from flask import jsonify, request
from flask.json.provider import DefaultJSONProvider

from .errors import ValidationError


class MongoJSONProvider(DefaultJSONProvider):
    """JSON provider that renders ObjectIds and datetimes as strings."""

    @staticmethod
    def default(o):
        if isinstance(o, ObjectId):
            return str(o)
        if hasattr(o, "isoformat"):
            return o.isoformat()
        return DefaultJSONProvider.default(o)


def json_body():
    data = request.get_json(silent=True)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def success(data=None, message=None, status=200):
    payload = {"status": "success"}
    if message is not None:
        payload["message"] = message
    if data is not None:
        payload["data"] = data
    return jsonify(payload), status

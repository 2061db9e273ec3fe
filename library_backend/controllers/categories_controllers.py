from flask import Blueprint

from library_backend.services import get_services
from library_backend.utils.access_policy import admin_required
from library_backend.utils.responses import json_body, success

categories_bp = Blueprint("categories", __name__)


@categories_bp.route("/allcategories")
def all_categories():
    return success(get_services().consistency.list_categories())


@categories_bp.route("/addcategory", methods=["POST"])
@admin_required("You don't have permission to add a category!")
def add_category():
    category = get_services().consistency.add_category(json_body())
    return success(category, "Category added successfully", 201)

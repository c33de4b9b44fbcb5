from flask import Blueprint

from api.api_v1.blueprint import create_api_v1_blueprint
from api.api_v2.blueprint import create_api_v2_blueprint


def create_api_blueprint(*, enable_v2: bool = True) -> Blueprint:
    """Create the main API blueprint and register versioned APIs.

    Keep this as the single registration point to avoid double-registering routes.
    """
    api_bp = Blueprint("api", __name__)

    api_bp.register_blueprint(create_api_v1_blueprint())

    if enable_v2:
        api_bp.register_blueprint(create_api_v2_blueprint())

    return api_bp

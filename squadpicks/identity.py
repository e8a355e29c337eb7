"""
Identity seam

Authentication happens upstream. The identity provider forwards the
authenticated user id in a request header, which Flask-Login turns into
current_user for every request.
"""

import logging

from flask import jsonify, request

from squadpicks import db, login_manager
from squadpicks.models import User

logger = logging.getLogger(__name__)


def _active_user(user_id):
    try:
        user = db.session.get(User, int(user_id))
    except (TypeError, ValueError):
        return None
    if user is None or not user.is_active:
        return None
    return user


def register_identity(app):
    """Wire Flask-Login to the upstream identity header"""
    header = app.config.get("IDENTITY_HEADER", "X-Authenticated-User")

    @login_manager.user_loader
    def load_user(user_id):
        return _active_user(user_id)

    @login_manager.request_loader
    def load_user_from_request(req):
        user_id = req.headers.get(header)
        if not user_id:
            return None

        user = _active_user(user_id)
        if user is None:
            logger.warning(f"Rejected identity header for unknown user {user_id!r}")
        return user

    @login_manager.unauthorized_handler
    def unauthorized():
        logger.debug(f"Unauthenticated request to {request.path}")
        return (
            jsonify({"error": "unauthorized", "message": "Authentication required"}),
            401,
        )

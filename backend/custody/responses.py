# Overview: JSON error responses shared by the API blueprints.

from flask import jsonify, current_app

from .extensions import db
from .validation import CustodyError


def error_response(e: CustodyError):
    """Roll back the unit of work and map a domain error to its status code."""
    db.session.rollback()
    return jsonify(e.to_dict()), e.status_code


def unexpected_error(action: str):
    """Opaque 500; the traceback goes to the app log only."""
    db.session.rollback()
    current_app.logger.exception("Failed to %s", action)
    return jsonify({"error": "Internal server error"}), 500

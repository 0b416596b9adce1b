"""
Flask decorators for admin API authentication.

Mutating endpoints require a static Bearer token (COHORTSYNC_API_TOKEN),
compared in constant time.
"""

import hmac
import logging
from functools import wraps

from flask import request, jsonify, current_app

logger = logging.getLogger(__name__)


def require_api_token(fn):
    """Reject requests without the configured Bearer token.

    Returns:
        401 Unauthorized: Missing or invalid token
        503 Service Unavailable: No token configured (endpoint disabled)
    """
    @wraps(fn)
    def wrapper(*args, **kwargs):
        expected = current_app.config["APP_CONFIG"].api_token
        if not expected:
            logger.warning("Admin API token not configured; rejecting %s %s", request.method, request.path)
            return jsonify({
                "error": "Service Unavailable",
                "message": "Admin API token is not configured",
            }), 503

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            logger.warning("Admin API request missing Bearer token")
            return jsonify({
                "error": "Unauthorized",
                "message": "Authorization header required. Use 'Authorization: Bearer <token>'",
            }), 401

        token = auth_header[7:]
        if not token or not hmac.compare_digest(token.encode("utf-8"), expected.encode("utf-8")):
            logger.warning("Admin API request with invalid token")
            return jsonify({"error": "Unauthorized", "message": "Invalid token"}), 401

        return fn(*args, **kwargs)

    return wrapper

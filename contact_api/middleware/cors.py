"""CORS middleware for the /api/* routes.

Only origins listed in CORS_ALLOWED_ORIGINS get Access-Control-* headers.
Requests without an Origin header (curl, server-to-server) are served
normally; a browser on any other origin gets no CORS headers, so its script
cannot read the response.
"""

import logging

from flask import current_app, make_response, request

logger = logging.getLogger(__name__)

ALLOWED_METHODS = "GET, POST, OPTIONS"
ALLOWED_HEADERS = "Content-Type, Accept, Authorization"


def _is_api_request():
    return request.path.startswith("/api/")


def answer_preflight():
    """Before-request hook: short-circuit OPTIONS preflights with 204."""
    if request.method == "OPTIONS" and _is_api_request():
        return make_response("", 204)
    return None


def add_cors_headers(response):
    """After-request hook: echo an allowed Origin back with the CORS headers."""
    if not _is_api_request():
        return response

    origin = request.headers.get("Origin")
    if not origin:
        return response

    response.vary.add("Origin")
    if origin not in current_app.config.get("CORS_ALLOWED_ORIGINS", []):
        logger.info(f"CORS blocked origin: {origin}")
        return response

    response.headers["Access-Control-Allow-Origin"] = origin
    response.headers["Access-Control-Allow-Credentials"] = "true"
    response.headers["Access-Control-Allow-Methods"] = ALLOWED_METHODS
    response.headers["Access-Control-Allow-Headers"] = ALLOWED_HEADERS
    if request.method == "OPTIONS":
        response.headers["Access-Control-Max-Age"] = "600"
    return response


def init_cors_middleware(app):
    """Register the preflight and header hooks."""
    app.before_request(answer_preflight)
    app.after_request(add_cors_headers)

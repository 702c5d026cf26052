"""
JWT Auth Middleware — Parses JWT from Authorization header, sets g.jwt_*.

Resolution order:
  1. JWT (Authorization: Bearer <token>)  →  g.jwt_user_id, g.jwt_role
  2. X-User-Id / X-User-Role headers      →  same, only when AUTH_DEV_HEADERS

The hook never rejects a request on its own; ``require_role`` in
``app/auth.py`` decides whether a missing identity is acceptable.
"""

import logging

import jwt as pyjwt
from flask import current_app, g, request

from app.services.jwt_service import decode_access_token

logger = logging.getLogger(__name__)

# Paths that skip JWT auth entirely
JWT_SKIP_PREFIXES = (
    "/api/v1/health",
    "/api/v1/reports/shared/",
    "/static/",
)


def init_jwt_middleware(app):
    """Register JWT middleware as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        g.jwt_user_id = None
        g.jwt_role = None

        path = request.path
        if not path.startswith("/api/v1/"):
            return
        for prefix in JWT_SKIP_PREFIXES:
            if path.startswith(prefix):
                return

        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:]  # Strip "Bearer "
            try:
                payload = decode_access_token(token)
            except pyjwt.ExpiredSignatureError:
                logger.info("Expired access token on %s", path)
                return
            except pyjwt.InvalidTokenError as exc:
                logger.warning("Invalid access token on %s: %s", path, exc)
                return
            g.jwt_user_id = payload.get("sub")
            g.jwt_role = payload.get("role")
            return

        if current_app.config.get("AUTH_DEV_HEADERS"):
            user_id = request.headers.get("X-User-Id")
            if user_id:
                g.jwt_user_id = user_id
                g.jwt_role = request.headers.get("X-User-Role")

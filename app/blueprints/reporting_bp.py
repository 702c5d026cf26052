"""
Accessibility Audit Platform
Reporting Blueprint — conformance report data and share links.

Endpoints:
    GET    /api/v1/reports/<pid>/data              — Full report (admin, owner, member)
    POST   /api/v1/reports/<pid>/share             — Issue a share link (admin, owner)
    DELETE /api/v1/reports/<pid>/share             — Revoke the share link (admin, owner)
    GET    /api/v1/reports/shared/<token>/data     — Report via share token (public)

The public route is skipped by the JWT middleware; an unknown token is a
404 and an expired one a 410.
"""

import logging

from flask import Blueprint, current_app, jsonify

from app.auth import current_identity, ensure_project_manager, ensure_project_viewer, require_role
from app.services import project_service
from app.services.report_engine import build_report_data
from app.utils.helpers import db_commit_or_error

logger = logging.getLogger(__name__)

reporting_bp = Blueprint("reporting", __name__, url_prefix="/api/v1/reports")


@reporting_bp.route("/<int:project_id>/data", methods=["GET"])
@require_role("admin", "customer")
def report_data(project_id):
    project = project_service.get_project(project_id)
    ensure_project_viewer(current_identity(), project)
    return jsonify(build_report_data(project.id)), 200


@reporting_bp.route("/<int:project_id>/share", methods=["POST"])
@require_role("admin", "customer")
def create_share_link(project_id):
    """Returns: { token, share_url, expires_at } (201). Replaces any previous link."""
    project = project_service.get_project(project_id)
    ensure_project_manager(current_identity(), project)
    link = project_service.create_share_link(
        project, current_app.config.get("SHARE_TOKEN_TTL_DAYS", 90),
    )
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(link), 201


@reporting_bp.route("/<int:project_id>/share", methods=["DELETE"])
@require_role("admin", "customer")
def revoke_share_link(project_id):
    project = project_service.get_project(project_id)
    ensure_project_manager(current_identity(), project)
    project_service.revoke_share_link(project)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"revoked": True}), 200


@reporting_bp.route("/shared/<string:token>/data", methods=["GET"])
def shared_report_data(token):
    project = project_service.get_project_by_share_token(token)
    return jsonify(build_report_data(project.id)), 200

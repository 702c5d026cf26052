"""
Admin Blueprint — engagement administration.

API Endpoints (JSON):
  PATCH  /api/v1/admin/projects/<id>               — Edit admin fields / change status
  POST   /api/v1/admin/projects/<id>/testers       — Assign a tester
  DELETE /api/v1/admin/projects/<id>/testers       — Remove a tester (row kept as removed)
  GET    /api/v1/admin/testers                     — Active testers for assignment pickers
  GET    /api/v1/admin/users                       — User directory (role/status filters)
  PUT    /api/v1/admin/users/<external_id>/role    — Assign a role

All endpoints require the admin role.
"""

import logging

from flask import Blueprint, jsonify, request

from app.auth import current_identity, require_role
from app.blueprints import paginate_query
from app.models.user import USER_ROLES, USER_STATUSES
from app.services import project_service, user_service
from app.utils.errors import E, api_error
from app.utils.helpers import db_commit_or_error

logger = logging.getLogger(__name__)

admin_bp = Blueprint("admin", __name__, url_prefix="/api/v1/admin")


# ═════════════════════════════════════════════════════════════════════════
# Projects
# ═════════════════════════════════════════════════════════════════════════


@admin_bp.route("/projects/<int:project_id>", methods=["PATCH"])
@require_role("admin")
def update_project(project_id):
    """
    Body: { project_name?, priority?, due_date?, admin_notes?, price_amount?,
            price_currency?, price_note?, status?, status_note?, expected_status? }
    Returns: updated project dict.
    """
    data = request.get_json(silent=True) or {}
    project = project_service.get_project(project_id)
    project_service.update_project(project, data, changed_by=current_identity().user_id)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(project.to_dict()), 200


@admin_bp.route("/projects/<int:project_id>/testers", methods=["POST"])
@require_role("admin")
def assign_tester(project_id):
    """
    Body: { tester_id, role: lead|member|reviewer, note? }
    Returns: project dict (201). A pending project becomes open.
    """
    data = request.get_json(silent=True) or {}
    project = project_service.get_project(project_id)
    project_service.assign_tester(project, data, assigned_by=current_identity().user_id)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(project.to_dict()), 201


@admin_bp.route("/projects/<int:project_id>/testers", methods=["DELETE"])
@require_role("admin")
def remove_tester(project_id):
    """
    Body: { tester_id }
    Returns: project dict.
    """
    data = request.get_json(silent=True) or {}
    tester_id = str(data.get("tester_id") or "").strip()
    if not tester_id:
        return api_error(E.VALIDATION_REQUIRED, "tester_id is required")
    project = project_service.get_project(project_id)
    project_service.remove_tester(project, tester_id, removed_by=current_identity().user_id)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(project.to_dict()), 200


# ═════════════════════════════════════════════════════════════════════════
# Users
# ═════════════════════════════════════════════════════════════════════════


@admin_bp.route("/testers", methods=["GET"])
@require_role("admin")
def list_testers():
    testers = user_service.list_testers()
    return jsonify({"items": [t.to_dict() for t in testers], "total": len(testers)}), 200


@admin_bp.route("/users", methods=["GET"])
@require_role("admin")
def list_users():
    """
    Query params: role? (admin|tester|customer|unassigned), status?, limit?, offset?
    Returns: { items: [user], total }
    """
    role = request.args.get("role") or None
    status = request.args.get("status") or None
    if role and role != "unassigned" and role not in USER_ROLES:
        return api_error(E.VALIDATION_INVALID, f"Unknown role: {role}")
    if status and status not in USER_STATUSES:
        return api_error(E.VALIDATION_INVALID, f"Unknown status: {status}")
    items, total = paginate_query(
        user_service.list_users_query(role=role, status=status), default_limit=20, max_limit=100,
    )
    return jsonify({"items": [u.to_dict() for u in items], "total": total}), 200


@admin_bp.route("/users/<string:external_id>/role", methods=["PUT"])
@require_role("admin")
def assign_role(external_id):
    """
    Body: { role, email?, first_name?, last_name?, status? }
    Returns: user dict.
    """
    data = request.get_json(silent=True) or {}
    user = user_service.assign_role(external_id, data)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(user.to_dict()), 200

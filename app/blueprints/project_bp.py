"""
Accessibility Audit Platform
Project Blueprint — customer submission and project reads.

Endpoints:
    POST   /api/v1/projects            — Submit a new audit request (customer)
    GET    /api/v1/projects            — List projects (own and invited for customers, all for admins)
    GET    /api/v1/projects/<id>       — Project detail (admin, owner, member)
    DELETE /api/v1/projects/<id>       — Withdraw a pending project (admin, owner)
    GET    /api/v1/projects/<id>/members           — Invited co-viewers (admin, owner)
    POST   /api/v1/projects/<id>/members           — Invite a customer by email (admin, owner)
    DELETE /api/v1/projects/<id>/members/<uid>     — Revoke an invitation (admin, owner)
    GET    /api/v1/projects/<id>/comments          — Discussion thread (admin, owner, member)
    POST   /api/v1/projects/<id>/comments          — Add a comment (admin, owner, member)
"""

import logging

from flask import Blueprint, jsonify, request

from app.auth import current_identity, ensure_project_manager, ensure_project_viewer, require_role
from app.blueprints import paginate_query
from app.models.project import PROJECT_STATUSES
from app.services import collaboration_service, project_service
from app.utils.errors import E, api_error
from app.utils.helpers import db_commit_or_error

logger = logging.getLogger(__name__)

project_bp = Blueprint("project", __name__, url_prefix="/api/v1")


@project_bp.route("/projects", methods=["POST"])
@require_role("customer")
def create_project():
    """
    Submit a project on behalf of the calling customer.

    Body: { project_name, service_category, target_url, accessibility_standard,
            service_package, location_address?, devices?, special_instructions?,
            price_amount?, price_currency?, price_note? }
    Returns: project dict (201), status = pending.
    """
    data = request.get_json(silent=True) or {}
    identity = current_identity()
    project = project_service.create_project(identity.user_id, data)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(project.to_dict()), 201


@project_bp.route("/projects", methods=["GET"])
@require_role("admin", "customer")
def list_projects():
    """
    Query params: status?, limit?, offset?
    Returns: { items: [project], total }
    """
    status = request.args.get("status")
    if status and status not in PROJECT_STATUSES:
        return api_error(E.VALIDATION_INVALID, f"Unknown status: {status}")
    query = project_service.list_projects_query(current_identity(), status=status)
    items, total = paginate_query(query)
    return jsonify({
        "items": [p.to_dict(include_history=False, include_collaboration=False) for p in items],
        "total": total,
    }), 200


@project_bp.route("/projects/<int:project_id>", methods=["GET"])
@require_role("admin", "customer")
def get_project(project_id):
    project = project_service.get_project(project_id)
    ensure_project_viewer(current_identity(), project)
    return jsonify(project.to_dict()), 200


@project_bp.route("/projects/<int:project_id>", methods=["DELETE"])
@require_role("admin", "customer")
def delete_project(project_id):
    """Only while the project is still pending; 409 afterwards."""
    project = project_service.get_project(project_id)
    ensure_project_manager(current_identity(), project)
    project_service.delete_project(project)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"deleted": True}), 200


# ── Members ──────────────────────────────────────────────────────────────


def _managed_project(project_id):
    project = project_service.get_project(project_id)
    ensure_project_manager(current_identity(), project)
    return project


@project_bp.route("/projects/<int:project_id>/members", methods=["GET"])
@require_role("admin", "customer")
def list_members(project_id):
    members = collaboration_service.list_members(_managed_project(project_id))
    return jsonify({"items": members, "total": len(members)}), 200


@project_bp.route("/projects/<int:project_id>/members", methods=["POST"])
@require_role("admin", "customer")
def add_member(project_id):
    """
    Body: { email }
    Returns: the updated member list (201). 404 for an unknown email,
    400 for the owner or an existing member.
    """
    data = request.get_json(silent=True) or {}
    project = _managed_project(project_id)
    collaboration_service.add_member(project, data, added_by=current_identity().user_id)
    err = db_commit_or_error()
    if err:
        return err
    members = collaboration_service.list_members(project)
    return jsonify({"items": members, "total": len(members)}), 201


@project_bp.route("/projects/<int:project_id>/members/<string:member_id>", methods=["DELETE"])
@require_role("admin", "customer")
def remove_member(project_id, member_id):
    project = _managed_project(project_id)
    collaboration_service.remove_member(project, member_id, removed_by=current_identity().user_id)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"removed": True}), 200


# ── Comments ─────────────────────────────────────────────────────────────


@project_bp.route("/projects/<int:project_id>/comments", methods=["GET"])
@require_role("admin", "customer")
def list_comments(project_id):
    project = project_service.get_project(project_id)
    ensure_project_viewer(current_identity(), project)
    items = [c.to_dict() for c in collaboration_service.list_comments(project)]
    return jsonify({"items": items, "total": len(items)}), 200


@project_bp.route("/projects/<int:project_id>/comments", methods=["POST"])
@require_role("admin", "customer")
def add_comment(project_id):
    """Body: { text }  Returns: the comment (201)."""
    data = request.get_json(silent=True) or {}
    identity = current_identity()
    project = project_service.get_project(project_id)
    ensure_project_viewer(identity, project)
    comment = collaboration_service.add_comment(project, identity, data)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(comment.to_dict()), 201

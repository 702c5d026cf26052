"""
Accessibility Audit Platform
Tester Blueprint — the tester's work queue and test execution.

Endpoints:
    GET   /api/v1/tester/tasks                          — My assignments (?work_status=)
    GET   /api/v1/tester/tasks/<pid>                    — One task
    PATCH /api/v1/tester/tasks/<pid>                    — accept | reject | start | done
    PATCH /api/v1/tester/tasks/<pid>/progress           — 0–100 estimate
    GET   /api/v1/tester/tasks/<pid>/scenarios          — My scenarios with my_result
    PATCH /api/v1/tester/tasks/<pid>/scenarios/<sid>/test-cases/<tcid>/result
    POST  /api/v1/tester/tasks/<pid>/scenarios/<sid>/test-cases/<tcid>/attachments
    GET   /api/v1/tester/tasks/<pid>/comments             — Project discussion thread
    POST  /api/v1/tester/tasks/<pid>/comments             — Add a comment
    GET   /api/v1/tester/tasks/<pid>/attachments          — Project-level evidence
    POST  /api/v1/tester/tasks/<pid>/attachments          — File evidence (test_case_id optional)
"""

import logging

from flask import Blueprint, jsonify, request

from app.auth import current_identity, require_role
from app.services import collaboration_service, testing_service, work_status
from app.utils.helpers import db_commit_or_error

logger = logging.getLogger(__name__)

tester_bp = Blueprint("tester", __name__, url_prefix="/api/v1/tester")


@tester_bp.route("/tasks", methods=["GET"])
@require_role("tester")
def list_tasks():
    tasks = work_status.list_tester_tasks(
        current_identity().user_id,
        work_status=request.args.get("work_status") or None,
    )
    items = [work_status.task_to_dict(p, a) for p, a in tasks]
    return jsonify({"items": items, "total": len(items)}), 200


@tester_bp.route("/tasks/<int:project_id>", methods=["GET"])
@require_role("tester")
def get_task(project_id):
    project, assignment = work_status.get_tester_task(project_id, current_identity().user_id)
    return jsonify(work_status.task_to_dict(project, assignment)), 200


@tester_bp.route("/tasks/<int:project_id>", methods=["PATCH"])
@require_role("tester")
def update_task(project_id):
    """
    Body: { action: accept|reject|start|done }
    Returns: task dict. 409 when the assignment is not in the action's source state.
    """
    data = request.get_json(silent=True) or {}
    tester_id = current_identity().user_id
    project, _ = work_status.get_tester_task(project_id, tester_id)
    assignment = work_status.apply_work_action(project, tester_id, data.get("action"))
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(work_status.task_to_dict(project, assignment)), 200


@tester_bp.route("/tasks/<int:project_id>/progress", methods=["PATCH"])
@require_role("tester")
def update_progress(project_id):
    """Body: { progress_percent: 0–100 }"""
    data = request.get_json(silent=True) or {}
    tester_id = current_identity().user_id
    project, _ = work_status.get_tester_task(project_id, tester_id)
    assignment = work_status.set_progress(project, tester_id, data.get("progress_percent"))
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(work_status.task_to_dict(project, assignment)), 200


# ── Execution ────────────────────────────────────────────────────────────


@tester_bp.route("/tasks/<int:project_id>/scenarios", methods=["GET"])
@require_role("tester")
def list_my_scenarios(project_id):
    tester_id = current_identity().user_id
    project, _ = work_status.get_tester_task(project_id, tester_id)
    items = testing_service.tester_scenarios(project, tester_id)
    return jsonify({"items": items, "total": len(items)}), 200


def _execution_target(project_id, scenario_id, test_case_id):
    tester_id = current_identity().user_id
    work_status.get_tester_task(project_id, tester_id)
    scenario = testing_service.get_scenario(project_id, scenario_id)
    tc = testing_service.get_test_case(scenario, test_case_id)
    return tester_id, scenario, tc


@tester_bp.route(
    "/tasks/<int:project_id>/scenarios/<int:scenario_id>/test-cases/<int:test_case_id>/result",
    methods=["PATCH"],
)
@require_role("tester")
def submit_result(project_id, scenario_id, test_case_id):
    """
    Body: { status: pass|fail|skip, note? }
    Returns: the caller's result dict.
    409 with details.blocking_test_case_ids while earlier test cases are pending.
    """
    data = request.get_json(silent=True) or {}
    tester_id, scenario, tc = _execution_target(project_id, scenario_id, test_case_id)
    result = testing_service.submit_result(scenario, tc, tester_id, data)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(result.to_dict()), 200


@tester_bp.route(
    "/tasks/<int:project_id>/scenarios/<int:scenario_id>/test-cases/<int:test_case_id>/attachments",
    methods=["POST"],
)
@require_role("tester")
def add_attachment(project_id, scenario_id, test_case_id):
    """
    Body: { name, size, type, url? }
    Returns: the caller's result dict including attachments (201).
    """
    data = request.get_json(silent=True) or {}
    tester_id, scenario, tc = _execution_target(project_id, scenario_id, test_case_id)
    result = testing_service.add_attachment(scenario, tc, tester_id, data)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(result.to_dict()), 201


# ── Collaboration ────────────────────────────────────────────────────────


@tester_bp.route("/tasks/<int:project_id>/comments", methods=["GET"])
@require_role("tester")
def list_comments(project_id):
    project, _ = work_status.get_tester_task(project_id, current_identity().user_id)
    items = [c.to_dict() for c in collaboration_service.list_comments(project)]
    return jsonify({"items": items, "total": len(items)}), 200


@tester_bp.route("/tasks/<int:project_id>/comments", methods=["POST"])
@require_role("tester")
def add_comment(project_id):
    """Body: { text }  Returns: the comment (201)."""
    data = request.get_json(silent=True) or {}
    identity = current_identity()
    project, _ = work_status.get_tester_task(project_id, identity.user_id)
    comment = collaboration_service.add_comment(project, identity, data)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(comment.to_dict()), 201


@tester_bp.route("/tasks/<int:project_id>/attachments", methods=["GET"])
@require_role("tester")
def list_project_attachments(project_id):
    project, _ = work_status.get_tester_task(project_id, current_identity().user_id)
    items = [a.to_dict() for a in project.attachments]
    return jsonify({"items": items, "total": len(items)}), 200


@tester_bp.route("/tasks/<int:project_id>/attachments", methods=["POST"])
@require_role("tester")
def add_project_attachment(project_id):
    """
    Body: { name, size, type, url?, test_case_id? }
    Returns: the attachment (201). 404 when test_case_id is not in this project.
    """
    data = request.get_json(silent=True) or {}
    tester_id = current_identity().user_id
    project, _ = work_status.get_tester_task(project_id, tester_id)
    attachment = collaboration_service.add_project_attachment(project, tester_id, data)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(attachment.to_dict()), 201

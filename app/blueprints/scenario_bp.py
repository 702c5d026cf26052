"""
Accessibility Audit Platform
Scenario Blueprint — test plan authoring.

Scenarios:
    GET    /api/v1/admin/projects/<pid>/scenarios
    POST   /api/v1/admin/projects/<pid>/scenarios
    GET    /api/v1/admin/projects/<pid>/scenarios/<sid>
    PUT    /api/v1/admin/projects/<pid>/scenarios/<sid>
    DELETE /api/v1/admin/projects/<pid>/scenarios/<sid>      — cascades to test cases

Test cases:
    GET    /api/v1/admin/projects/<pid>/scenarios/<sid>/test-cases
    POST   /api/v1/admin/projects/<pid>/scenarios/<sid>/test-cases
    GET    /api/v1/admin/projects/<pid>/scenarios/<sid>/test-cases/<tcid>
    PUT    /api/v1/admin/projects/<pid>/scenarios/<sid>/test-cases/<tcid>
    DELETE /api/v1/admin/projects/<pid>/scenarios/<sid>/test-cases/<tcid>

Recommendations:
    GET    …/test-cases/<tcid>/recommendations
    POST   …/test-cases/<tcid>/recommendations
    PUT    …/test-cases/<tcid>/recommendations/<rid>
    DELETE …/test-cases/<tcid>/recommendations/<rid>

Writes require the admin role. Reads are also open to the customer who
owns the project.
"""

import logging

from flask import Blueprint, jsonify, request

from app.auth import current_identity, ensure_project_viewer, require_role
from app.services import project_service, testing_service
from app.utils.helpers import db_commit_or_error

logger = logging.getLogger(__name__)

scenario_bp = Blueprint("scenario", __name__, url_prefix="/api/v1/admin/projects")


def _viewable_project(project_id):
    project = project_service.get_project(project_id)
    ensure_project_viewer(current_identity(), project)
    return project


def _scenario(project_id, scenario_id, *, read=False):
    if read:
        _viewable_project(project_id)
    else:
        project_service.get_project(project_id)
    return testing_service.get_scenario(project_id, scenario_id)


# ═════════════════════════════════════════════════════════════════════════
# Scenarios
# ═════════════════════════════════════════════════════════════════════════


@scenario_bp.route("/<int:project_id>/scenarios", methods=["GET"])
@require_role("admin", "customer")
def list_scenarios(project_id):
    """Returns: { items: [scenario + test_case_count, result_summary, tester_name], total }"""
    project = _viewable_project(project_id)
    items = testing_service.list_scenario_summaries(project)
    return jsonify({"items": items, "total": len(items)}), 200


@scenario_bp.route("/<int:project_id>/scenarios", methods=["POST"])
@require_role("admin")
def create_scenario(project_id):
    """
    Body: { title, assigned_tester_id, description?, order? }
    Returns: scenario dict (201).
    """
    data = request.get_json(silent=True) or {}
    project = project_service.get_project(project_id)
    scenario = testing_service.create_scenario(
        project, data, created_by=current_identity().user_id,
    )
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(scenario.to_dict()), 201


@scenario_bp.route("/<int:project_id>/scenarios/<int:scenario_id>", methods=["GET"])
@require_role("admin", "customer")
def get_scenario(project_id, scenario_id):
    scenario = _scenario(project_id, scenario_id, read=True)
    data = scenario.to_dict()
    data["test_cases"] = [tc.to_dict() for tc in testing_service.list_test_cases(scenario)]
    return jsonify(data), 200


@scenario_bp.route("/<int:project_id>/scenarios/<int:scenario_id>", methods=["PUT"])
@require_role("admin")
def update_scenario(project_id, scenario_id):
    data = request.get_json(silent=True) or {}
    scenario = _scenario(project_id, scenario_id)
    testing_service.update_scenario(scenario, data)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(scenario.to_dict()), 200


@scenario_bp.route("/<int:project_id>/scenarios/<int:scenario_id>", methods=["DELETE"])
@require_role("admin")
def delete_scenario(project_id, scenario_id):
    scenario = _scenario(project_id, scenario_id)
    testing_service.delete_scenario(scenario)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"deleted": True}), 200


# ═════════════════════════════════════════════════════════════════════════
# Test cases
# ═════════════════════════════════════════════════════════════════════════


@scenario_bp.route("/<int:project_id>/scenarios/<int:scenario_id>/test-cases", methods=["GET"])
@require_role("admin", "customer")
def list_test_cases(project_id, scenario_id):
    scenario = _scenario(project_id, scenario_id, read=True)
    items = [tc.to_dict() for tc in testing_service.list_test_cases(scenario)]
    return jsonify({"items": items, "total": len(items)}), 200


@scenario_bp.route("/<int:project_id>/scenarios/<int:scenario_id>/test-cases", methods=["POST"])
@require_role("admin")
def create_test_case(project_id, scenario_id):
    """
    Body: { title, expected_result, steps: [{order?, instruction} | str],
            description?, priority?, order?, wcag_criteria?: [id] }
    Returns: test case dict (201).
    """
    data = request.get_json(silent=True) or {}
    scenario = _scenario(project_id, scenario_id)
    tc = testing_service.create_test_case(scenario, data, created_by=current_identity().user_id)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(tc.to_dict()), 201


@scenario_bp.route(
    "/<int:project_id>/scenarios/<int:scenario_id>/test-cases/<int:test_case_id>",
    methods=["GET"],
)
@require_role("admin", "customer")
def get_test_case(project_id, scenario_id, test_case_id):
    scenario = _scenario(project_id, scenario_id, read=True)
    tc = testing_service.get_test_case(scenario, test_case_id)
    return jsonify(tc.to_dict()), 200


@scenario_bp.route(
    "/<int:project_id>/scenarios/<int:scenario_id>/test-cases/<int:test_case_id>",
    methods=["PUT"],
)
@require_role("admin")
def update_test_case(project_id, scenario_id, test_case_id):
    data = request.get_json(silent=True) or {}
    scenario = _scenario(project_id, scenario_id)
    tc = testing_service.get_test_case(scenario, test_case_id)
    testing_service.update_test_case(tc, data)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(tc.to_dict()), 200


@scenario_bp.route(
    "/<int:project_id>/scenarios/<int:scenario_id>/test-cases/<int:test_case_id>",
    methods=["DELETE"],
)
@require_role("admin")
def delete_test_case(project_id, scenario_id, test_case_id):
    scenario = _scenario(project_id, scenario_id)
    tc = testing_service.get_test_case(scenario, test_case_id)
    testing_service.delete_test_case(tc)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"deleted": True}), 200


# ═════════════════════════════════════════════════════════════════════════
# Recommendations
# ═════════════════════════════════════════════════════════════════════════

_REC_BASE = "/<int:project_id>/scenarios/<int:scenario_id>/test-cases/<int:test_case_id>/recommendations"


@scenario_bp.route(_REC_BASE, methods=["GET"])
@require_role("admin", "customer")
def list_recommendations(project_id, scenario_id, test_case_id):
    scenario = _scenario(project_id, scenario_id, read=True)
    tc = testing_service.get_test_case(scenario, test_case_id)
    items = [r.to_dict() for r in tc.recommendations]
    return jsonify({"items": items, "total": len(items)}), 200


@scenario_bp.route(_REC_BASE, methods=["POST"])
@require_role("admin")
def create_recommendation(project_id, scenario_id, test_case_id):
    """
    Body: { title, description, how_to_fix, severity?, technique?,
            reference_url?, code_snippet? }
    Returns: recommendation dict (201). Severity defaults to medium.
    """
    data = request.get_json(silent=True) or {}
    scenario = _scenario(project_id, scenario_id)
    tc = testing_service.get_test_case(scenario, test_case_id)
    rec = testing_service.create_recommendation(tc, data, created_by=current_identity().user_id)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(rec.to_dict()), 201


@scenario_bp.route(_REC_BASE + "/<int:rec_id>", methods=["PUT"])
@require_role("admin")
def update_recommendation(project_id, scenario_id, test_case_id, rec_id):
    data = request.get_json(silent=True) or {}
    scenario = _scenario(project_id, scenario_id)
    tc = testing_service.get_test_case(scenario, test_case_id)
    rec = testing_service.get_recommendation(tc, rec_id)
    testing_service.update_recommendation(rec, data)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(rec.to_dict()), 200


@scenario_bp.route(_REC_BASE + "/<int:rec_id>", methods=["DELETE"])
@require_role("admin")
def delete_recommendation(project_id, scenario_id, test_case_id, rec_id):
    scenario = _scenario(project_id, scenario_id)
    tc = testing_service.get_test_case(scenario, test_case_id)
    rec = testing_service.get_recommendation(tc, rec_id)
    testing_service.delete_recommendation(rec)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"deleted": True}), 200

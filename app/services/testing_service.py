"""
Test execution service.

Scenario / TestCase / Recommendation CRUD for admins, result recording and
evidence attachments for testers, plus the views both sides read.

Ordered execution:
    A tester may record pass/fail/skip on test case T of scenario S only
    after recording a non-pending result on every test case of S with a
    smaller order. The check and the write share one transaction; the
    predecessor result rows are read with SELECT … FOR UPDATE on databases
    that support it.

Transaction policy: methods use flush() for ID generation, never commit().
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError

from app.core.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from app.models import db
from app.models.scenario import Scenario
from app.models.testing import (
    RECOMMENDATION_SEVERITIES,
    SUBMITTABLE_RESULT_STATUSES,
    TEST_CASE_PRIORITIES,
    Recommendation,
    ResultAttachment,
    TestCase,
    TestResult,
    TestStep,
)
from app.services.user_service import display_names, require_tester
from app.services.wcag_catalog import validate_criterion_ids
from app.utils.helpers import is_choice

logger = logging.getLogger(__name__)

ORDER_BLOCKED_MESSAGE = "Complete previous test cases first"


def _str(value) -> str:
    return str(value or "").strip()


def _validate_order(data: dict, errors: dict):
    if "order" in data and data["order"] is not None:
        order = data["order"]
        if isinstance(order, bool) or not isinstance(order, int) or order < 0:
            errors["order"] = "must be a non-negative integer"


# ═════════════════════════════════════════════════════════════════════════════
# Lookups
# ═════════════════════════════════════════════════════════════════════════════


def get_scenario(project_id: int, scenario_id: int) -> Scenario:
    scenario = db.session.get(Scenario, scenario_id)
    if scenario is None or scenario.project_id != project_id:
        raise NotFoundError("Scenario", scenario_id)
    return scenario


def get_test_case(scenario: Scenario, test_case_id: int) -> TestCase:
    test_case = db.session.get(TestCase, test_case_id)
    if test_case is None or test_case.scenario_id != scenario.id:
        raise NotFoundError("TestCase", test_case_id)
    return test_case


def get_recommendation(test_case: TestCase, rec_id: int) -> Recommendation:
    rec = db.session.get(Recommendation, rec_id)
    if rec is None or rec.test_case_id != test_case.id:
        raise NotFoundError("Recommendation", rec_id)
    return rec


def list_test_cases(scenario: Scenario) -> list[TestCase]:
    return (
        TestCase.query
        .filter_by(scenario_id=scenario.id)
        .order_by(TestCase.sort_order, TestCase.id)
        .all()
    )


# ═════════════════════════════════════════════════════════════════════════════
# Scenarios
# ═════════════════════════════════════════════════════════════════════════════


def _next_scenario_order(project_id: int) -> int:
    current = db.session.execute(
        select(func.max(Scenario.sort_order)).where(Scenario.project_id == project_id)
    ).scalar()
    return 0 if current is None else current + 1


def create_scenario(project, data: dict, *, created_by: str) -> Scenario:
    """Create a scenario; ``order`` defaults to max sibling order + 1 (0 if first)."""
    errors = {}
    if not _str(data.get("title")):
        errors["title"] = "required"
    if not _str(data.get("assigned_tester_id")):
        errors["assigned_tester_id"] = "required"
    _validate_order(data, errors)
    if errors:
        raise ValidationError("Validation failed", details=errors)

    tester_id = _str(data["assigned_tester_id"])
    require_tester(tester_id)

    order = data.get("order")
    scenario = Scenario(
        project_id=project.id,
        title=_str(data["title"]),
        description=_str(data.get("description")),
        assigned_tester_id=tester_id,
        sort_order=order if order is not None else _next_scenario_order(project.id),
        created_by=created_by,
    )
    db.session.add(scenario)
    db.session.flush()
    logger.info("Scenario %s created in project %s for tester %s", scenario.id, project.id, tester_id)
    return scenario


def update_scenario(scenario: Scenario, data: dict) -> Scenario:
    errors = {}
    if "title" in data and not _str(data["title"]):
        errors["title"] = "cannot be empty"
    if "assigned_tester_id" in data and not _str(data["assigned_tester_id"]):
        errors["assigned_tester_id"] = "cannot be empty"
    _validate_order(data, errors)
    if errors:
        raise ValidationError("Validation failed", details=errors)

    if "assigned_tester_id" in data:
        tester_id = _str(data["assigned_tester_id"])
        require_tester(tester_id)
        scenario.assigned_tester_id = tester_id
    if "title" in data:
        scenario.title = _str(data["title"])
    if "description" in data:
        scenario.description = _str(data["description"])
    if data.get("order") is not None:
        scenario.sort_order = data["order"]
    db.session.flush()
    return scenario


def delete_scenario(scenario: Scenario):
    """Delete the scenario's test cases, then the scenario itself.

    Test steps, results, attachments and recommendations go with their
    test case through ON DELETE CASCADE.
    """
    deleted = (
        TestCase.query
        .filter_by(scenario_id=scenario.id)
        .delete(synchronize_session=False)
    )
    db.session.flush()
    db.session.delete(scenario)
    db.session.flush()
    logger.info("Scenario %s deleted with %d test cases", scenario.id, deleted)


def _overall_case_status(results) -> str:
    """Roll every tester's result on one test case into a single status."""
    statuses = [r.status for r in results]
    if not statuses:
        return "pending"
    if "fail" in statuses:
        return "fail"
    if "skip" in statuses:
        return "skip"
    if all(s == "pass" for s in statuses):
        return "pass"
    return "pending"


def list_scenario_summaries(project) -> list[dict]:
    """Scenarios with test-case count, per-status tally and tester name."""
    scenarios = (
        Scenario.query
        .filter_by(project_id=project.id)
        .order_by(Scenario.sort_order, Scenario.id)
        .all()
    )
    if not scenarios:
        return []

    summaries = {s.id: {"pass": 0, "fail": 0, "skip": 0, "pending": 0} for s in scenarios}
    counts = {s.id: 0 for s in scenarios}
    test_cases = TestCase.query.filter(TestCase.scenario_id.in_(list(summaries))).all()
    for tc in test_cases:
        counts[tc.scenario_id] += 1
        summaries[tc.scenario_id][_overall_case_status(tc.results)] += 1

    names = display_names(s.assigned_tester_id for s in scenarios)
    data = []
    for s in scenarios:
        row = s.to_dict()
        row["test_case_count"] = counts[s.id]
        row["result_summary"] = summaries[s.id]
        row["tester_name"] = names.get(s.assigned_tester_id, s.assigned_tester_id)
        data.append(row)
    return data


def _pending_placeholder(tester_id: str) -> dict:
    return {
        "tester_id": tester_id,
        "status": "pending",
        "note": "",
        "attachments": [],
        "tested_at": None,
    }


def tester_scenarios(project, tester_id: str) -> list[dict]:
    """The caller's scenarios, each test case carrying ``my_result``."""
    scenarios = (
        Scenario.query
        .filter_by(project_id=project.id, assigned_tester_id=tester_id)
        .order_by(Scenario.sort_order, Scenario.id)
        .all()
    )
    data = []
    for scenario in scenarios:
        row = scenario.to_dict()
        cases = []
        for tc in list_test_cases(scenario):
            case = tc.to_dict(include_results=False)
            mine = tc.result_for(tester_id)
            case["my_result"] = mine.to_dict() if mine else _pending_placeholder(tester_id)
            cases.append(case)
        row["test_cases"] = cases
        data.append(row)
    return data


# ═════════════════════════════════════════════════════════════════════════════
# Test cases
# ═════════════════════════════════════════════════════════════════════════════


def _parse_steps(raw, errors: dict) -> list[dict]:
    """Accept ``[{order?, instruction}]`` or plain strings; renumber from 1."""
    if not isinstance(raw, list):
        errors["steps"] = "must be a list"
        return []
    steps = []
    for idx, item in enumerate(raw):
        if isinstance(item, str):
            instruction, order = item, None
        elif isinstance(item, dict):
            instruction, order = item.get("instruction"), item.get("order")
        else:
            errors["steps"] = f"step {idx + 1} must be an object or string"
            return []
        if not _str(instruction):
            errors["steps"] = f"step {idx + 1} instruction is required"
            return []
        steps.append({"order": order if isinstance(order, int) else idx + 1,
                      "instruction": _str(instruction)})
    steps.sort(key=lambda s: s["order"])
    return [{"order": n, "instruction": s["instruction"]} for n, s in enumerate(steps, start=1)]


def _next_test_case_order(scenario_id: int) -> int:
    current = db.session.execute(
        select(func.max(TestCase.sort_order)).where(TestCase.scenario_id == scenario_id)
    ).scalar()
    return 0 if current is None else current + 1


def _validate_test_case(data: dict, *, creating: bool) -> tuple[list[dict] | None, list | None]:
    errors = {}
    for field in ("title", "expected_result"):
        if creating and not _str(data.get(field)):
            errors[field] = "required"
        elif not creating and field in data and not _str(data[field]):
            errors[field] = "cannot be empty"
    if creating and "steps" not in data:
        errors["steps"] = "must be a list"
    steps = _parse_steps(data["steps"], errors) if "steps" in data else None
    if "priority" in data and not is_choice(data["priority"], TEST_CASE_PRIORITIES):
        errors["priority"] = f"must be one of: {', '.join(sorted(TEST_CASE_PRIORITIES))}"
    _validate_order(data, errors)
    if errors:
        raise ValidationError("Validation failed", details=errors)
    criteria = validate_criterion_ids(data["wcag_criteria"]) if "wcag_criteria" in data else None
    return steps, criteria


def create_test_case(scenario: Scenario, data: dict, *, created_by: str) -> TestCase:
    """Create a test case; ``order`` defaults to max sibling order + 1 (0 if first)."""
    steps, criteria = _validate_test_case(data, creating=True)

    order = data.get("order")
    tc = TestCase(
        project_id=scenario.project_id,
        scenario_id=scenario.id,
        title=_str(data["title"]),
        description=_str(data.get("description")),
        expected_result=_str(data["expected_result"]),
        priority=data.get("priority") or "medium",
        sort_order=order if order is not None else _next_test_case_order(scenario.id),
        wcag_criteria=criteria or [],
        created_by=created_by,
    )
    for step in steps:
        tc.steps.append(TestStep(step_no=step["order"], instruction=step["instruction"]))
    db.session.add(tc)
    db.session.flush()
    logger.info("TestCase %s created in scenario %s (order %s)", tc.id, scenario.id, tc.sort_order)
    return tc


def update_test_case(tc: TestCase, data: dict) -> TestCase:
    steps, criteria = _validate_test_case(data, creating=False)

    for field in ("title", "description", "expected_result"):
        if field in data:
            setattr(tc, field, _str(data[field]))
    if "priority" in data:
        tc.priority = data["priority"]
    if data.get("order") is not None:
        tc.sort_order = data["order"]
    if criteria is not None:
        tc.wcag_criteria = criteria
    if steps is not None:
        tc.steps.clear()
        db.session.flush()
        for step in steps:
            tc.steps.append(TestStep(step_no=step["order"], instruction=step["instruction"]))
    db.session.flush()
    return tc


def delete_test_case(tc: TestCase):
    db.session.delete(tc)
    db.session.flush()
    logger.info("TestCase %s deleted", tc.id)


# ═════════════════════════════════════════════════════════════════════════════
# Results & attachments (tester)
# ═════════════════════════════════════════════════════════════════════════════


def _ensure_scenario_owner(scenario: Scenario, tester_id: str):
    if scenario.assigned_tester_id != tester_id:
        logger.warning("Tester %s denied on scenario %s (owner %s)",
                       tester_id, scenario.id, scenario.assigned_tester_id)
        raise ForbiddenError("This scenario is assigned to another tester")


def _blocking_predecessors(tc: TestCase, tester_id: str) -> list[int]:
    """Ids of lower-ordered test cases still lacking a non-pending result."""
    predecessor_ids = [
        row[0] for row in db.session.execute(
            select(TestCase.id)
            .where(TestCase.scenario_id == tc.scenario_id, TestCase.sort_order < tc.sort_order)
            .order_by(TestCase.sort_order, TestCase.id)
        )
    ]
    if not predecessor_ids:
        return []
    completed = {
        row[0] for row in db.session.execute(
            select(TestResult.test_case_id)
            .where(
                TestResult.test_case_id.in_(predecessor_ids),
                TestResult.tester_id == tester_id,
                TestResult.status != "pending",
            )
            .with_for_update()
        )
    }
    return [i for i in predecessor_ids if i not in completed]


def _find_or_create_result(tc: TestCase, tester_id: str, **defaults) -> tuple[TestResult, bool]:
    result = TestResult.query.filter_by(test_case_id=tc.id, tester_id=tester_id).first()
    if result is not None:
        return result, False
    result = TestResult(test_case_id=tc.id, tester_id=tester_id, **defaults)
    db.session.add(result)
    try:
        db.session.flush()
    except IntegrityError as exc:
        db.session.rollback()
        raise ConflictError("TestResult", "tester_id", tester_id) from exc
    return result, True


def submit_result(scenario: Scenario, tc: TestCase, tester_id: str, data: dict) -> TestResult:
    """Record the caller's pass/fail/skip verdict on ``tc``.

    Body: { status: pass|fail|skip, note? }
    """
    status = data.get("status")
    if not is_choice(status, SUBMITTABLE_RESULT_STATUSES):
        raise ValidationError(
            f"status must be one of: {', '.join(SUBMITTABLE_RESULT_STATUSES)}",
            details={"status": "invalid"},
        )
    note = data.get("note")
    if note is not None and not isinstance(note, str):
        raise ValidationError("note must be a string", details={"note": "invalid"})

    _ensure_scenario_owner(scenario, tester_id)

    blocking = _blocking_predecessors(tc, tester_id)
    if blocking:
        logger.warning("Tester %s blocked on test case %s by %s", tester_id, tc.id, blocking)
        raise InvalidTransitionError(
            "submit_result",
            current="pending",
            expected="|".join(SUBMITTABLE_RESULT_STATUSES),
            message=ORDER_BLOCKED_MESSAGE,
            details={"blocking_test_case_ids": blocking},
        )

    now = datetime.now(timezone.utc)
    result, created = _find_or_create_result(
        tc, tester_id, status=status, note=note or "", tested_at=now,
    )
    if not created:
        previous = result.status
        result.status = status
        if note is not None:
            result.note = note
        result.tested_at = now
        db.session.flush()
        logger.info("Result on test case %s by %s: %s → %s", tc.id, tester_id, previous, status)
    else:
        logger.info("Result on test case %s by %s: %s", tc.id, tester_id, status)
    db.session.expire(tc, ["results"])
    return result


def add_attachment(scenario: Scenario, tc: TestCase, tester_id: str, data: dict) -> TestResult:
    """Append evidence metadata to the caller's result (created pending if absent).

    Body: { name, size, type, url? }
    """
    errors = {}
    if not _str(data.get("name")):
        errors["name"] = "required"
    size = data.get("size")
    if size is None:
        errors["size"] = "required"
    elif isinstance(size, bool) or not isinstance(size, int) or size < 0:
        errors["size"] = "must be a non-negative integer"
    if not _str(data.get("type")):
        errors["type"] = "required"
    if errors:
        raise ValidationError("name, size, and type are required", details=errors)

    _ensure_scenario_owner(scenario, tester_id)

    result, _ = _find_or_create_result(tc, tester_id, status="pending", note="")
    result.attachments.append(ResultAttachment(
        name=_str(data["name"]),
        size=size,
        content_type=_str(data["type"]),
        url=data.get("url") or None,
    ))
    db.session.flush()
    logger.info("Attachment %r added to result %s", data["name"], result.id)
    return result


# ═════════════════════════════════════════════════════════════════════════════
# Recommendations (admin)
# ═════════════════════════════════════════════════════════════════════════════

_REC_REQUIRED = ("title", "description", "how_to_fix")
_REC_OPTIONAL = ("technique", "reference_url", "code_snippet")


def _validate_recommendation(data: dict, *, creating: bool):
    errors = {}
    for field in _REC_REQUIRED:
        if creating and not _str(data.get(field)):
            errors[field] = "required"
        elif not creating and field in data and not _str(data[field]):
            errors[field] = "cannot be empty"
    if data.get("severity") is not None and not is_choice(data["severity"], RECOMMENDATION_SEVERITIES):
        errors["severity"] = f"must be one of: {', '.join(RECOMMENDATION_SEVERITIES)}"
    if errors:
        raise ValidationError("Validation failed", details=errors)


def create_recommendation(tc: TestCase, data: dict, *, created_by: str) -> Recommendation:
    _validate_recommendation(data, creating=True)
    rec = Recommendation(
        test_case_id=tc.id,
        title=_str(data["title"]),
        description=_str(data["description"]),
        how_to_fix=_str(data["how_to_fix"]),
        severity=data.get("severity") or "medium",
        created_by=created_by,
        **{f: (_str(data.get(f)) or None) for f in _REC_OPTIONAL},
    )
    db.session.add(rec)
    db.session.flush()
    logger.info("Recommendation %s (%s) added to test case %s", rec.id, rec.severity, tc.id)
    return rec


def update_recommendation(rec: Recommendation, data: dict) -> Recommendation:
    _validate_recommendation(data, creating=False)
    for field in _REC_REQUIRED:
        if field in data:
            setattr(rec, field, _str(data[field]))
    for field in _REC_OPTIONAL:
        if field in data:
            setattr(rec, field, _str(data[field]) or None)
    if data.get("severity") is not None:
        rec.severity = data["severity"]
    db.session.flush()
    return rec


def delete_recommendation(rec: Recommendation):
    db.session.delete(rec)
    db.session.flush()
    logger.info("Recommendation %s deleted", rec.id)


# ═════════════════════════════════════════════════════════════════════════════
# Reconciliation
# ═════════════════════════════════════════════════════════════════════════════


def find_orphaned_test_cases() -> list[TestCase]:
    """Test cases whose scenario is gone or belongs to a different project."""
    return (
        TestCase.query
        .outerjoin(Scenario, Scenario.id == TestCase.scenario_id)
        .filter(or_(Scenario.id.is_(None), Scenario.project_id != TestCase.project_id))
        .order_by(TestCase.id)
        .all()
    )


def purge_orphaned_test_cases() -> int:
    orphans = find_orphaned_test_cases()
    for tc in orphans:
        db.session.delete(tc)
    db.session.flush()
    if orphans:
        logger.warning("Purged %d orphaned test cases: %s", len(orphans), [tc.id for tc in orphans])
    return len(orphans)

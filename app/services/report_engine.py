"""
Conformance Report Engine.

Rolls every test case of a project up into the report consumed by the
dashboard and the PDF renderer:

  - summary:     effective-status tally, pass rate, recommendation severities
  - scenarios:   each with its test cases, effective result, steps, fixes
  - wcag_report: in-scope criteria grouped by principle, plus A/AA/AAA totals

Effective status of a test case is its *last* result row (insertion order),
not an aggregate across testers; no results means ``pending``.

Read-only: nothing here flushes or locks. The helpers below the builder take
plain objects with ``results`` / ``recommendations`` / ``wcag_criteria``
attributes so they can be exercised without a database.
"""

import logging
from collections import defaultdict
from datetime import datetime, timezone

from app.core.exceptions import NotFoundError
from app.models import db
from app.models.project import Project
from app.models.scenario import Scenario
from app.models.testing import RECOMMENDATION_SEVERITIES, TestCase
from app.services.user_service import display_names
from app.services.wcag_catalog import (
    LEVEL_ORDER,
    PRINCIPLE_ORDER,
    WCAG_CRITERIA,
    criteria_at_level,
    criteria_up_to,
)

logger = logging.getLogger(__name__)


# ═════════════════════════════════════════════════════════════════════════════
# PURE ROLLUP HELPERS
# ═════════════════════════════════════════════════════════════════════════════


def parse_report_level(standard) -> str:
    """'WCAG 2.1 AAA' → AAA, '… AA' → AA, anything else → A."""
    standard = standard or ""
    if "AAA" in standard:
        return "AAA"
    if "AA" in standard:
        return "AA"
    return "A"


def effective_result(test_case):
    """Last result row of the test case, or None."""
    results = list(getattr(test_case, "results", None) or [])
    return results[-1] if results else None


def effective_status(test_case) -> str:
    last = effective_result(test_case)
    if last is None:
        return "pending"
    return getattr(last, "status", None) or "pending"


def half_up_percent(part: int, total: int) -> int:
    """round(part / total * 100) with .5 rounding up; 0 when total is 0."""
    if not total:
        return 0
    return (part * 200 + total) // (total * 2)


def summarize(test_cases) -> dict:
    """Status tally, pass rate and recommendation severity counts."""
    counts = {"pass": 0, "fail": 0, "skip": 0, "pending": 0}
    severities = dict.fromkeys(RECOMMENDATION_SEVERITIES, 0)

    for tc in test_cases:
        status = effective_status(tc)
        counts[status if status in counts else "pending"] += 1
        for rec in getattr(tc, "recommendations", None) or []:
            if rec.severity in severities:
                severities[rec.severity] += 1

    total = len(test_cases)
    return {
        "total_test_cases": total,
        **counts,
        "pass_rate": half_up_percent(counts["pass"], total),
        "critical_count": severities["critical"],
        "high_count": severities["high"],
        "medium_count": severities["medium"],
        "low_count": severities["low"],
        "total_recommendations": sum(severities.values()),
    }


def resolve_criterion_status(statuses) -> str:
    """fail if any fail, pass if all pass, otherwise not_tested."""
    statuses = list(statuses)
    if not statuses:
        return "not_tested"
    if "fail" in statuses:
        return "fail"
    if all(s == "pass" for s in statuses):
        return "pass"
    return "not_tested"


def build_wcag_report(test_cases, target_level: str) -> dict:
    """Criterion table for ``target_level`` plus per-level conformance totals.

    Principles list only criteria at or below the target level; the
    conformance buckets always cover the whole catalog for each level.
    """
    entries = {
        c["id"]: {
            "id": c["id"],
            "title": c["title"],
            "level": c["level"],
            "status": "not_tested",
            "test_cases": [],
            "recommendations": [],
        }
        for c in WCAG_CRITERIA
    }

    for tc in test_cases:
        criteria = getattr(tc, "wcag_criteria", None) or []
        if not criteria:
            continue
        status = effective_status(tc)
        recs = [
            {"title": r.title, "severity": r.severity, "how_to_fix": r.how_to_fix}
            for r in getattr(tc, "recommendations", None) or []
        ]
        for cid in criteria:
            entry = entries.get(cid)
            if entry is None:
                continue
            entry["test_cases"].append({"id": tc.id, "title": tc.title, "result": status})
            entry["recommendations"].extend(recs)

    for entry in entries.values():
        entry["status"] = resolve_criterion_status(t["result"] for t in entry["test_cases"])

    grouped = defaultdict(list)
    for c in criteria_up_to(target_level):
        grouped[c["principle"]].append(entries[c["id"]])
    principles = [
        {"name": name, "criteria": grouped[name]}
        for name in PRINCIPLE_ORDER
        if grouped.get(name)
    ]

    conformance = {}
    for level in LEVEL_ORDER:
        bucket = {"total": 0, "pass": 0, "fail": 0, "not_tested": 0}
        for c in criteria_at_level(level):
            bucket["total"] += 1
            bucket[entries[c["id"]]["status"]] += 1
        conformance[level] = bucket

    return {"level": target_level, "principles": principles, "conformance": conformance}


# ═════════════════════════════════════════════════════════════════════════════
# REPORT BUILDER
# ═════════════════════════════════════════════════════════════════════════════


def _result_out(last, names) -> dict:
    if last is None:
        return {"status": "pending", "note": None, "attachments": [],
                "tested_at": None, "tester_name": None}
    return {
        "status": last.status or "pending",
        "note": last.note,
        "attachments": [
            {"name": a.name, "url": a.url, "type": a.content_type}
            for a in last.attachments
        ],
        "tested_at": last.tested_at.isoformat() if last.tested_at else None,
        "tester_name": names.get(last.tester_id, last.tester_id) if last.tester_id else None,
    }


def _test_case_out(tc, names) -> dict:
    return {
        "id": tc.id,
        "title": tc.title,
        "description": tc.description,
        "order": tc.sort_order,
        "priority": tc.priority,
        "wcag_criteria": list(tc.wcag_criteria or []),
        "expected_result": tc.expected_result,
        "steps": [s.to_dict() for s in tc.steps],
        "result": _result_out(effective_result(tc), names),
        "recommendations": [
            {
                "id": r.id,
                "title": r.title,
                "description": r.description,
                "severity": r.severity,
                "how_to_fix": r.how_to_fix,
                "technique": r.technique,
                "reference_url": r.reference_url,
                "code_snippet": r.code_snippet,
            }
            for r in tc.recommendations
        ],
    }


def _project_out(project) -> dict:
    return {
        "id": project.id,
        "project_name": project.project_name,
        "service_category": project.service_category,
        "service_package": project.service_package,
        "accessibility_standard": project.accessibility_standard,
        "target_url": project.target_url,
        "location_address": project.location_address,
        "status": project.status,
        "created_at": project.created_at.isoformat() if project.created_at else None,
        "status_history": [
            {
                "from": h.from_status,
                "to": h.to_status,
                "changed_at": h.changed_at.isoformat() if h.changed_at else None,
                "note": h.note,
            }
            for h in project.status_history
        ],
    }


def build_report_data(project_id: int) -> dict:
    """Assemble the full conformance report for one project."""
    project = db.session.get(Project, project_id)
    if project is None:
        raise NotFoundError("Project", project_id)

    scenarios = (
        Scenario.query
        .filter_by(project_id=project.id)
        .order_by(Scenario.sort_order, Scenario.id)
        .all()
    )
    test_cases = (
        TestCase.query
        .filter_by(project_id=project.id)
        .order_by(TestCase.sort_order, TestCase.id)
        .all()
    )

    tester_ids = {s.assigned_tester_id for s in scenarios}
    tester_ids.update(r.tester_id for tc in test_cases for r in tc.results)
    names = display_names(tester_ids)

    by_scenario = defaultdict(list)
    for tc in test_cases:
        by_scenario[tc.scenario_id].append(tc)

    scenarios_out = [
        {
            "id": s.id,
            "title": s.title,
            "order": s.sort_order,
            "tester_name": names.get(s.assigned_tester_id, s.assigned_tester_id),
            "test_cases": [_test_case_out(tc, names) for tc in by_scenario.get(s.id, [])],
        }
        for s in scenarios
    ]

    report_level = parse_report_level(project.accessibility_standard)
    report = {
        "project": _project_out(project),
        "summary": summarize(test_cases),
        "scenarios": scenarios_out,
        "wcag_report": build_wcag_report(test_cases, report_level),
        "generated_at": datetime.now(timezone.utc).isoformat(),
    }
    logger.info(
        "Report built for project %s: %d test cases, pass rate %d%%",
        project.id, report["summary"]["total_test_cases"], report["summary"]["pass_rate"],
    )
    return report

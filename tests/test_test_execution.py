"""
Scenario / test-case authoring and sequential test execution.

Covers:
    - scenario + test-case CRUD, default ordering, step renumbering
    - WCAG criterion validation
    - ordered execution (blocking predecessors), scenario ownership
    - attachments, tester scenario view, admin summaries
    - scenario deletion cascade and orphan reconciliation
"""

import pytest

from app.models import db
from app.models.project import Project
from app.models.scenario import Scenario
from app.models.testing import TestCase, TestResult
from app.services import testing_service

from tests.conftest import OTHER_CUSTOMER_ID, OTHER_TESTER_ID, TESTER_ID

ADMIN_BASE = "/api/v1/admin/projects"
TESTER_BASE = "/api/v1/tester/tasks"


def _create_scenario(client, pid, headers, **overrides):
    payload = {"title": "Checkout flow", "assigned_tester_id": TESTER_ID}
    payload.update(overrides)
    res = client.post(f"{ADMIN_BASE}/{pid}/scenarios", json=payload, headers=headers)
    assert res.status_code == 201, res.get_json()
    return res.get_json()


def _create_test_case(client, pid, sid, headers, **overrides):
    payload = {
        "title": "Images have alt text",
        "expected_result": "Every informative image exposes alt text",
        "steps": ["Open the home page", "Inspect each image"],
        "wcag_criteria": ["1.1.1"],
    }
    payload.update(overrides)
    res = client.post(
        f"{ADMIN_BASE}/{pid}/scenarios/{sid}/test-cases", json=payload, headers=headers,
    )
    assert res.status_code == 201, res.get_json()
    return res.get_json()


def _submit(client, pid, sid, tcid, headers, status="pass", note=None):
    body = {"status": status}
    if note is not None:
        body["note"] = note
    return client.patch(
        f"{TESTER_BASE}/{pid}/scenarios/{sid}/test-cases/{tcid}/result",
        json=body,
        headers=headers,
    )


@pytest.fixture()
def plan(client, assigned_project, admin_headers):
    """One scenario with three test cases at orders 0, 1, 2."""
    pid = assigned_project["id"]
    scenario = _create_scenario(client, pid, admin_headers)
    cases = [
        _create_test_case(client, pid, scenario["id"], admin_headers, title=f"Case {i}")
        for i in range(3)
    ]
    return {"pid": pid, "sid": scenario["id"], "cases": [c["id"] for c in cases]}


# ═════════════════════════════════════════════════════════════════════════════
# Authoring
# ═════════════════════════════════════════════════════════════════════════════


class TestAuthoring:
    def test_scenario_order_defaults(self, client, assigned_project, admin_headers):
        pid = assigned_project["id"]
        first = _create_scenario(client, pid, admin_headers)
        second = _create_scenario(client, pid, admin_headers, title="Login")
        explicit = _create_scenario(client, pid, admin_headers, title="Search", order=10)
        assert (first["order"], second["order"], explicit["order"]) == (0, 1, 10)

    def test_scenario_requires_tester_role(self, client, assigned_project, admin_headers, make_user):
        make_user("cust-x", "customer")
        res = client.post(
            f"{ADMIN_BASE}/{assigned_project['id']}/scenarios",
            json={"title": "X", "assigned_tester_id": "cust-x"},
            headers=admin_headers,
        )
        assert res.status_code == 404

    def test_scenario_missing_title_is_400(self, client, assigned_project, admin_headers):
        res = client.post(
            f"{ADMIN_BASE}/{assigned_project['id']}/scenarios",
            json={"assigned_tester_id": TESTER_ID},
            headers=admin_headers,
        )
        assert res.status_code == 400
        assert res.get_json()["details"]["title"] == "required"

    def test_steps_renumbered(self, client, assigned_project, admin_headers):
        pid = assigned_project["id"]
        sid = _create_scenario(client, pid, admin_headers)["id"]
        tc = _create_test_case(
            client, pid, sid, admin_headers,
            steps=[{"order": 5, "instruction": "second"}, {"order": 2, "instruction": "first"}],
        )
        assert tc["steps"] == [
            {"order": 1, "instruction": "first"},
            {"order": 2, "instruction": "second"},
        ]
        assert tc["order"] == 0
        assert tc["priority"] == "medium"

    def test_test_case_requires_steps_list(self, client, assigned_project, admin_headers):
        pid = assigned_project["id"]
        sid = _create_scenario(client, pid, admin_headers)["id"]
        res = client.post(
            f"{ADMIN_BASE}/{pid}/scenarios/{sid}/test-cases",
            json={"title": "T", "expected_result": "E"},
            headers=admin_headers,
        )
        assert res.status_code == 400
        assert "steps" in res.get_json()["details"]

    def test_unknown_wcag_criterion_is_400(self, client, assigned_project, admin_headers):
        pid = assigned_project["id"]
        sid = _create_scenario(client, pid, admin_headers)["id"]
        res = client.post(
            f"{ADMIN_BASE}/{pid}/scenarios/{sid}/test-cases",
            json={"title": "T", "expected_result": "E", "steps": [], "wcag_criteria": ["9.9.9"]},
            headers=admin_headers,
        )
        assert res.status_code == 400
        assert res.get_json()["details"]["wcag_criteria"] == ["9.9.9"]

    def test_update_test_case_replaces_steps(self, client, plan, admin_headers):
        url = f"{ADMIN_BASE}/{plan['pid']}/scenarios/{plan['sid']}/test-cases/{plan['cases'][0]}"
        res = client.put(
            url,
            json={"steps": ["only step"], "priority": "critical", "wcag_criteria": ["1.4.3", "1.4.3"]},
            headers=admin_headers,
        )
        assert res.status_code == 200
        data = res.get_json()
        assert data["steps"] == [{"order": 1, "instruction": "only step"}]
        assert data["priority"] == "critical"
        assert data["wcag_criteria"] == ["1.4.3"]

    def test_test_case_in_other_scenario_is_404(self, client, plan, admin_headers):
        other = _create_scenario(client, plan["pid"], admin_headers, title="Other")
        res = client.get(
            f"{ADMIN_BASE}/{plan['pid']}/scenarios/{other['id']}/test-cases/{plan['cases'][0]}",
            headers=admin_headers,
        )
        assert res.status_code == 404

    def test_owner_can_read_plan(self, client, plan, customer_headers):
        res = client.get(f"{ADMIN_BASE}/{plan['pid']}/scenarios", headers=customer_headers)
        assert res.status_code == 200
        row = res.get_json()["items"][0]
        assert row["test_case_count"] == 3
        assert row["tester_name"] == "Tess Tester"
        assert row["result_summary"] == {"pass": 0, "fail": 0, "skip": 0, "pending": 3}

    def test_other_customer_cannot_read_plan(self, client, plan, auth_headers):
        res = client.get(
            f"{ADMIN_BASE}/{plan['pid']}/scenarios",
            headers=auth_headers(OTHER_CUSTOMER_ID, "customer"),
        )
        assert res.status_code == 403

    def test_customer_cannot_write_plan(self, client, plan, customer_headers):
        res = client.post(
            f"{ADMIN_BASE}/{plan['pid']}/scenarios",
            json={"title": "X", "assigned_tester_id": TESTER_ID},
            headers=customer_headers,
        )
        assert res.status_code == 403


# ═════════════════════════════════════════════════════════════════════════════
# Ordered execution
# ═════════════════════════════════════════════════════════════════════════════


class TestOrderedExecution:
    def test_out_of_order_submission_blocked(self, client, plan, tester_headers):
        c0, c1, c2 = plan["cases"]
        res = _submit(client, plan["pid"], plan["sid"], c2, tester_headers)
        assert res.status_code == 409
        body = res.get_json()
        assert body["error"] == "Complete previous test cases first"
        assert body["details"]["blocking_test_case_ids"] == [c0, c1]
        assert body["details"]["current"] == "pending"
        assert body["details"]["expected"] == "pass|fail|skip"
        assert TestResult.query.count() == 0

    def test_in_order_submission(self, client, plan, tester_headers):
        c0, c1, c2 = plan["cases"]
        assert _submit(client, plan["pid"], plan["sid"], c0, tester_headers, "pass").status_code == 200
        assert _submit(client, plan["pid"], plan["sid"], c1, tester_headers, "skip").status_code == 200
        res = _submit(client, plan["pid"], plan["sid"], c2, tester_headers, "fail", note="no alt")
        assert res.status_code == 200
        data = res.get_json()
        assert data["status"] == "fail"
        assert data["note"] == "no alt"
        assert data["tested_at"] is not None

    def test_first_case_always_open(self, client, plan, tester_headers):
        res = _submit(client, plan["pid"], plan["sid"], plan["cases"][0], tester_headers)
        assert res.status_code == 200

    def test_resubmission_updates_single_row(self, client, plan, tester_headers):
        c0 = plan["cases"][0]
        _submit(client, plan["pid"], plan["sid"], c0, tester_headers, "fail", note="first")
        res = _submit(client, plan["pid"], plan["sid"], c0, tester_headers, "pass")
        assert res.get_json()["status"] == "pass"
        assert res.get_json()["note"] == "first"
        assert TestResult.query.filter_by(test_case_id=c0).count() == 1

    def test_pending_status_cannot_be_submitted(self, client, plan, tester_headers):
        res = _submit(client, plan["pid"], plan["sid"], plan["cases"][0], tester_headers, "pending")
        assert res.status_code == 400

    def test_other_tester_forbidden(self, client, plan, admin_headers, other_tester_headers):
        client.post(
            f"{ADMIN_BASE}/{plan['pid']}/testers",
            json={"tester_id": OTHER_TESTER_ID, "role": "member"},
            headers=admin_headers,
        )
        res = _submit(client, plan["pid"], plan["sid"], plan["cases"][0], other_tester_headers)
        assert res.status_code == 403

    def test_tester_without_assignment_forbidden(self, client, plan, other_tester_headers):
        res = _submit(client, plan["pid"], plan["sid"], plan["cases"][0], other_tester_headers)
        assert res.status_code == 403

    def test_pending_attachment_result_does_not_unblock(self, client, plan, tester_headers):
        c0, c1, _ = plan["cases"]
        url = f"{TESTER_BASE}/{plan['pid']}/scenarios/{plan['sid']}/test-cases/{c0}/attachments"
        client.post(url, json={"name": "shot.png", "size": 1024, "type": "image/png"}, headers=tester_headers)
        res = _submit(client, plan["pid"], plan["sid"], c1, tester_headers)
        assert res.status_code == 409
        assert res.get_json()["details"]["blocking_test_case_ids"] == [c0]


# ═════════════════════════════════════════════════════════════════════════════
# Attachments & tester view
# ═════════════════════════════════════════════════════════════════════════════


class TestAttachments:
    def _url(self, plan, tcid):
        return f"{TESTER_BASE}/{plan['pid']}/scenarios/{plan['sid']}/test-cases/{tcid}/attachments"

    def test_attachment_creates_pending_result(self, client, plan, tester_headers):
        res = client.post(
            self._url(plan, plan["cases"][1]),
            json={"name": "contrast.png", "size": 2048, "type": "image/png", "url": "s3://bucket/contrast.png"},
            headers=tester_headers,
        )
        assert res.status_code == 201
        data = res.get_json()
        assert data["status"] == "pending"
        assert data["attachments"][0]["name"] == "contrast.png"
        assert data["attachments"][0]["type"] == "image/png"

    def test_attachments_append(self, client, plan, tester_headers):
        c0 = plan["cases"][0]
        _submit(client, plan["pid"], plan["sid"], c0, tester_headers, "fail")
        for name in ("a.png", "b.png"):
            client.post(self._url(plan, c0), json={"name": name, "size": 1, "type": "image/png"}, headers=tester_headers)
        result = TestResult.query.filter_by(test_case_id=c0).one()
        assert result.status == "fail"
        assert [a.name for a in result.attachments] == ["a.png", "b.png"]

    def test_attachment_requires_metadata(self, client, plan, tester_headers):
        res = client.post(self._url(plan, plan["cases"][0]), json={"name": "x"}, headers=tester_headers)
        assert res.status_code == 400
        assert set(res.get_json()["details"]) == {"size", "type"}

    def test_tester_scenarios_view(self, client, plan, tester_headers):
        _submit(client, plan["pid"], plan["sid"], plan["cases"][0], tester_headers, "pass")
        res = client.get(f"{TESTER_BASE}/{plan['pid']}/scenarios", headers=tester_headers)
        assert res.status_code == 200
        cases = res.get_json()["items"][0]["test_cases"]
        assert [c["my_result"]["status"] for c in cases] == ["pass", "pending", "pending"]
        assert cases[1]["my_result"]["tester_id"] == TESTER_ID
        assert "results" not in cases[0]


# ═════════════════════════════════════════════════════════════════════════════
# Deletion & reconciliation
# ═════════════════════════════════════════════════════════════════════════════


class TestDeletion:
    def test_delete_scenario_removes_test_cases(self, client, plan, admin_headers, tester_headers):
        _submit(client, plan["pid"], plan["sid"], plan["cases"][0], tester_headers)
        res = client.delete(f"{ADMIN_BASE}/{plan['pid']}/scenarios/{plan['sid']}", headers=admin_headers)
        assert res.status_code == 200
        assert db.session.get(Scenario, plan["sid"]) is None
        assert TestCase.query.count() == 0
        assert TestResult.query.count() == 0

    def test_delete_test_case(self, client, plan, admin_headers):
        tcid = plan["cases"][1]
        res = client.delete(
            f"{ADMIN_BASE}/{plan['pid']}/scenarios/{plan['sid']}/test-cases/{tcid}", headers=admin_headers,
        )
        assert res.status_code == 200
        assert db.session.get(TestCase, tcid) is None

    def test_orphan_reconciliation(self, client, app, plan):
        decoy = Project(
            customer_id="someone-else", project_name="Decoy", service_category="website",
            target_url="https://decoy.example.com", accessibility_standard="WCAG 2.1 A",
            service_package="automated",
        )
        db.session.add(decoy)
        db.session.flush()
        # Scenario re-parented while its test cases still point at the old project
        db.session.get(Scenario, plan["sid"]).project_id = decoy.id
        db.session.commit()

        orphans = testing_service.find_orphaned_test_cases()
        assert sorted(tc.id for tc in orphans) == sorted(plan["cases"])

        runner = app.test_cli_runner()
        result = runner.invoke(args=["reconcile-orphans"])
        assert "3 orphaned test cases." in result.output

        result = runner.invoke(args=["reconcile-orphans", "--purge"])
        assert "Purged 3 orphaned test cases." in result.output
        db.session.expire_all()
        assert TestCase.query.count() == 0

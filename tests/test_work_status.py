"""
Tester work-status state machine (``app/services/work_status.py``).

    assigned ──accept──▶ accepted ──start──▶ working ──done──▶ done
        └──────reject──▶ removed

Every valid edge returns 200 with the new status and its side effect;
every action from the wrong state returns 409 with current/expected.
"""

import pytest

from app.models.project import REJECTED_NOTE, WORK_TRANSITIONS, TesterAssignment
from app.services import work_status
from app.services.project_service import get_project
from app.core.exceptions import ForbiddenError, InvalidTransitionError, ValidationError

from tests.conftest import OTHER_TESTER_ID, TESTER_ID

BASE = "/api/v1/tester/tasks"


def _act(client, pid, action, headers):
    return client.patch(f"{BASE}/{pid}", json={"action": action}, headers=headers)


def _force_status(pid, status):
    from app.models import db
    row = TesterAssignment.query.filter_by(project_id=pid, tester_id=TESTER_ID).first()
    row.work_status = status
    db.session.commit()


class TestValidEdges:
    def test_full_happy_path(self, client, assigned_project, tester_headers):
        pid = assigned_project["id"]

        res = _act(client, pid, "accept", tester_headers)
        assert res.status_code == 200
        mine = res.get_json()["my_assignment"]
        assert mine["work_status"] == "accepted"
        assert mine["accepted_at"] is not None

        res = _act(client, pid, "start", tester_headers)
        assert res.get_json()["my_assignment"]["work_status"] == "working"

        res = _act(client, pid, "done", tester_headers)
        mine = res.get_json()["my_assignment"]
        assert mine["work_status"] == "done"
        assert mine["completed_at"] is not None

    def test_reject_marks_removed_with_note(self, client, assigned_project, tester_headers):
        res = _act(client, assigned_project["id"], "reject", tester_headers)
        assert res.status_code == 200
        mine = res.get_json()["my_assignment"]
        assert mine["work_status"] == "removed"
        assert mine["note"] == REJECTED_NOTE


class TestInvalidEdges:
    @pytest.mark.parametrize("action", ["start", "done"])
    def test_actions_blocked_from_assigned(self, client, assigned_project, tester_headers, action):
        res = _act(client, assigned_project["id"], action, tester_headers)
        assert res.status_code == 409
        body = res.get_json()
        assert body["code"] == "ERR_CONFLICT_STATE"
        assert body["details"]["current"] == "assigned"
        assert body["details"]["expected"] == WORK_TRANSITIONS[action][0]

    @pytest.mark.parametrize("action", list(WORK_TRANSITIONS))
    def test_nothing_allowed_after_done(self, client, assigned_project, tester_headers, action):
        _force_status(assigned_project["id"], "done")
        res = _act(client, assigned_project["id"], action, tester_headers)
        assert res.status_code == 409
        assert res.get_json()["details"]["current"] == "done"

    def test_accept_after_reject_is_conflict(self, client, assigned_project, tester_headers):
        pid = assigned_project["id"]
        _act(client, pid, "reject", tester_headers)
        res = _act(client, pid, "accept", tester_headers)
        assert res.status_code == 409
        assert res.get_json()["details"]["current"] == "removed"

    def test_state_unchanged_after_rejected_action(self, client, assigned_project, tester_headers):
        pid = assigned_project["id"]
        _act(client, pid, "done", tester_headers)
        res = client.get(f"{BASE}/{pid}", headers=tester_headers)
        assert res.get_json()["my_assignment"]["work_status"] == "assigned"

    def test_unknown_action_is_400(self, client, assigned_project, tester_headers):
        res = _act(client, assigned_project["id"], "pause", tester_headers)
        assert res.status_code == 400

    def test_unassigned_tester_is_403(self, client, assigned_project, other_tester_headers):
        res = _act(client, assigned_project["id"], "accept", other_tester_headers)
        assert res.status_code == 403

    def test_customer_cannot_act(self, client, assigned_project, customer_headers):
        res = _act(client, assigned_project["id"], "accept", customer_headers)
        assert res.status_code == 403


class TestServiceLayer:
    def test_lost_race_raises_invalid_transition(self, assigned_project, tester_headers):
        project = get_project(assigned_project["id"])
        assignment = project.active_assignment(TESTER_ID)
        # Another request accepted in the meantime; the stale object still says "assigned"
        from app.models import db
        from sqlalchemy import update
        db.session.execute(
            update(TesterAssignment)
            .where(TesterAssignment.id == assignment.id)
            .values(work_status="accepted")
            .execution_options(synchronize_session=False)
        )
        assert assignment.work_status == "assigned"
        with pytest.raises(InvalidTransitionError) as exc_info:
            work_status.apply_work_action(project, TESTER_ID, "accept")
        assert exc_info.value.current == "accepted"

    def test_no_assignment_raises_forbidden(self, assigned_project, other_tester_headers):
        project = get_project(assigned_project["id"])
        with pytest.raises(ForbiddenError):
            work_status.apply_work_action(project, OTHER_TESTER_ID, "accept")

    def test_progress_rejects_bool(self, assigned_project, tester_headers):
        project = get_project(assigned_project["id"])
        with pytest.raises(ValidationError):
            work_status.set_progress(project, TESTER_ID, True)


class TestProgress:
    def test_progress_in_any_state(self, client, assigned_project, tester_headers):
        pid = assigned_project["id"]
        res = client.patch(f"{BASE}/{pid}/progress", json={"progress_percent": 40}, headers=tester_headers)
        assert res.status_code == 200
        assert res.get_json()["my_assignment"]["progress_percent"] == 40
        assert res.get_json()["my_assignment"]["work_status"] == "assigned"

    @pytest.mark.parametrize("value", [-1, 101, "50", None])
    def test_progress_out_of_range(self, client, assigned_project, tester_headers, value):
        res = client.patch(
            f"{BASE}/{assigned_project['id']}/progress",
            json={"progress_percent": value},
            headers=tester_headers,
        )
        assert res.status_code == 400

    def test_progress_boundaries(self, client, assigned_project, tester_headers):
        pid = assigned_project["id"]
        for value in (0, 100):
            res = client.patch(f"{BASE}/{pid}/progress", json={"progress_percent": value}, headers=tester_headers)
            assert res.status_code == 200


class TestTaskViews:
    def test_list_tasks_with_filter(self, client, assigned_project, tester_headers):
        res = client.get(BASE, headers=tester_headers)
        body = res.get_json()
        assert body["total"] == 1
        task = body["items"][0]
        assert task["id"] == assigned_project["id"]
        assert "admin_notes" not in task
        assert "assigned_testers" not in task
        assert task["price_amount"] == 1500000

        res = client.get(f"{BASE}?work_status=working", headers=tester_headers)
        assert res.get_json()["total"] == 0

    def test_unknown_work_status_filter_is_400(self, client, tester_headers):
        res = client.get(f"{BASE}?work_status=sleeping", headers=tester_headers)
        assert res.status_code == 400

    def test_task_detail_for_unassigned_tester_is_403(self, client, assigned_project, other_tester_headers):
        res = client.get(f"{BASE}/{assigned_project['id']}", headers=other_tester_headers)
        assert res.status_code == 403

    def test_task_detail_missing_project_is_404(self, client, tester_headers):
        res = client.get(f"{BASE}/4242", headers=tester_headers)
        assert res.status_code == 404

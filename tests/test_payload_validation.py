"""
Malformed JSON payloads on enum-valued fields.

A list or object where an enum string belongs must come back as a 400
naming the field, never as a server error.
"""

import pytest

from app.core.exceptions import ValidationError
from app.services.wcag_catalog import validate_criterion_ids
from app.utils.helpers import is_choice

from tests.conftest import PROJECT_PAYLOAD, TESTER_ID


@pytest.fixture()
def targets(client, assigned_project, admin_headers):
    """Ids of one scenario and one test case on the assigned project."""
    pid = assigned_project["id"]
    sid = client.post(
        f"/api/v1/admin/projects/{pid}/scenarios",
        json={"title": "Login", "assigned_tester_id": TESTER_ID},
        headers=admin_headers,
    ).get_json()["id"]
    tcid = client.post(
        f"/api/v1/admin/projects/{pid}/scenarios/{sid}/test-cases",
        json={"title": "Labels", "expected_result": "Inputs labelled", "steps": ["Inspect"]},
        headers=admin_headers,
    ).get_json()["id"]
    return {"pid": pid, "sid": sid, "tcid": tcid}


_REC_BODY = {"title": "t", "description": "d", "how_to_fix": "h"}


@pytest.mark.parametrize("who,method,path,body,field", [
    ("tester", "patch", "/api/v1/tester/tasks/{pid}", {"action": ["accept"]}, "action"),
    ("admin", "patch", "/api/v1/admin/projects/{pid}", {"status": ["open"]}, "status"),
    ("admin", "patch", "/api/v1/admin/projects/{pid}", {"priority": {"level": "high"}}, "priority"),
    ("admin", "patch", "/api/v1/admin/projects/{pid}",
     {"status": "in_review", "expected_status": ["open"]}, "expected_status"),
    ("admin", "patch", "/api/v1/admin/projects/{pid}", {"price_currency": ["THB"]}, "price_currency"),
    ("admin", "post", "/api/v1/admin/projects/{pid}/testers",
     {"tester_id": TESTER_ID, "role": ["lead"]}, "role"),
    ("admin", "put", "/api/v1/admin/projects/{pid}/scenarios/{sid}/test-cases/{tcid}",
     {"wcag_criteria": [["1.1.1"]]}, "wcag_criteria"),
    ("admin", "put", "/api/v1/admin/projects/{pid}/scenarios/{sid}/test-cases/{tcid}",
     {"priority": ["high"]}, "priority"),
    ("admin", "post", "/api/v1/admin/projects/{pid}/scenarios/{sid}/test-cases/{tcid}/recommendations",
     dict(_REC_BODY, severity=["high"]), "severity"),
    ("admin", "put", "/api/v1/admin/users/someone/role", {"role": ["tester"]}, "role"),
    ("tester", "patch", "/api/v1/tester/tasks/{pid}/scenarios/{sid}/test-cases/{tcid}/result",
     {"status": ["pass"]}, "status"),
])
def test_non_string_enum_is_400(
    client, targets, admin_headers, tester_headers, who, method, path, body, field,
):
    headers = admin_headers if who == "admin" else tester_headers
    res = getattr(client, method)(path.format(**targets), json=body, headers=headers)
    assert res.status_code == 400
    data = res.get_json()
    assert data["code"] == "ERR_VALIDATION_INVALID"
    assert field in data.get("details", {})


def test_submission_with_list_currency_is_400(client, customer_headers):
    res = client.post(
        "/api/v1/projects",
        json=dict(PROJECT_PAYLOAD, price_currency=["THB"]),
        headers=customer_headers,
    )
    assert res.status_code == 400
    assert "price_currency" in res.get_json()["details"]


def test_tester_task_filter_accepts_known_status(client, assigned_project, tester_headers):
    res = client.get("/api/v1/tester/tasks?work_status=assigned", headers=tester_headers)
    assert res.status_code == 200
    assert res.get_json()["total"] == 1


class TestHelpers:
    @pytest.mark.parametrize("value,expected", [
        ("open", True),
        ("archived", False),
        (["open"], False),
        ({"open": 1}, False),
        (None, False),
    ])
    def test_is_choice(self, value, expected):
        assert is_choice(value, {"open", "pending"}) is expected

    @pytest.mark.parametrize("ids", [[["1.1.1"]], [{"id": "1.1.1"}], ["1.1.1", 7]])
    def test_criterion_ids_must_be_strings(self, ids):
        with pytest.raises(ValidationError):
            validate_criterion_ids(ids)

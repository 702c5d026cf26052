"""
Project collaboration: invited members, the comment thread and
project-level tester attachments.
"""

import pytest

from tests.conftest import OTHER_CUSTOMER_ID, TESTER_ID

BASE = "/api/v1/projects"
TESTER_BASE = "/api/v1/tester/tasks"
MEMBER_ID = "customer-3"


@pytest.fixture()
def member_headers(make_user, auth_headers):
    make_user(MEMBER_ID, "customer", first_name="Mina", last_name="Member")
    return auth_headers(MEMBER_ID, "customer")


@pytest.fixture()
def invited(client, project, customer_headers, member_headers):
    """``project`` with MEMBER_ID invited by the owner."""
    res = client.post(
        f"{BASE}/{project['id']}/members",
        json={"email": f"{MEMBER_ID}@example.com"},
        headers=customer_headers,
    )
    assert res.status_code == 201, res.get_json()
    return project


# ═════════════════════════════════════════════════════════════════════════════
# Members
# ═════════════════════════════════════════════════════════════════════════════


class TestMembers:
    def test_owner_invites_by_email(self, client, invited, customer_headers):
        res = client.get(f"{BASE}/{invited['id']}/members", headers=customer_headers)
        assert res.status_code == 200
        items = res.get_json()["items"]
        assert [m["user_id"] for m in items] == [MEMBER_ID]
        assert items[0]["email"] == f"{MEMBER_ID}@example.com"
        assert items[0]["first_name"] == "Mina"

    def test_email_match_ignores_case(self, client, project, customer_headers, member_headers):
        res = client.post(
            f"{BASE}/{project['id']}/members",
            json={"email": "  CUSTOMER-3@Example.com "},
            headers=customer_headers,
        )
        assert res.status_code == 201
        assert res.get_json()["items"][0]["user_id"] == MEMBER_ID

    def test_unknown_email_is_404(self, client, project, customer_headers):
        res = client.post(
            f"{BASE}/{project['id']}/members",
            json={"email": "nobody@example.com"},
            headers=customer_headers,
        )
        assert res.status_code == 404

    def test_existing_member_is_400(self, client, invited, customer_headers):
        res = client.post(
            f"{BASE}/{invited['id']}/members",
            json={"email": f"{MEMBER_ID}@example.com"},
            headers=customer_headers,
        )
        assert res.status_code == 400
        assert res.get_json()["error"] == "Already a member"

    def test_owner_cannot_be_invited(self, client, project, customer_headers):
        res = client.post(
            f"{BASE}/{project['id']}/members",
            json={"email": "customer-1@example.com"},
            headers=customer_headers,
        )
        assert res.status_code == 400
        assert res.get_json()["error"] == "Already the project owner"

    def test_tester_account_cannot_be_invited(self, client, project, customer_headers, tester_headers):
        res = client.post(
            f"{BASE}/{project['id']}/members",
            json={"email": f"{TESTER_ID}@example.com"},
            headers=customer_headers,
        )
        assert res.status_code == 400

    def test_non_string_email_is_400(self, client, project, customer_headers):
        res = client.post(f"{BASE}/{project['id']}/members", json={"email": ["x"]}, headers=customer_headers)
        assert res.status_code == 400
        assert "email" in res.get_json()["details"]

    def test_admin_may_invite(self, client, project, admin_headers, member_headers):
        res = client.post(
            f"{BASE}/{project['id']}/members",
            json={"email": f"{MEMBER_ID}@example.com"},
            headers=admin_headers,
        )
        assert res.status_code == 201

    def test_other_customer_cannot_manage_members(self, client, project, auth_headers, make_user):
        make_user(OTHER_CUSTOMER_ID, "customer")
        res = client.get(
            f"{BASE}/{project['id']}/members", headers=auth_headers(OTHER_CUSTOMER_ID, "customer"),
        )
        assert res.status_code == 403


class TestMemberAccess:
    def test_member_reads_project_and_report(self, client, invited, member_headers):
        assert client.get(f"{BASE}/{invited['id']}", headers=member_headers).status_code == 200
        res = client.get(f"/api/v1/reports/{invited['id']}/data", headers=member_headers)
        assert res.status_code == 200

    def test_member_sees_project_in_list(self, client, invited, member_headers):
        res = client.get(BASE, headers=member_headers)
        assert [p["id"] for p in res.get_json()["items"]] == [invited["id"]]

    def test_member_cannot_manage(self, client, invited, member_headers):
        pid = invited["id"]
        assert client.delete(f"{BASE}/{pid}", headers=member_headers).status_code == 403
        assert client.post(f"/api/v1/reports/{pid}/share", headers=member_headers).status_code == 403
        assert client.get(f"{BASE}/{pid}/members", headers=member_headers).status_code == 403

    def test_removed_member_loses_access(self, client, invited, customer_headers, member_headers):
        res = client.delete(f"{BASE}/{invited['id']}/members/{MEMBER_ID}", headers=customer_headers)
        assert res.status_code == 200
        assert res.get_json() == {"removed": True}
        assert client.get(f"{BASE}/{invited['id']}", headers=member_headers).status_code == 403

    def test_removing_owner_is_400(self, client, project, customer_headers):
        res = client.delete(f"{BASE}/{project['id']}/members/customer-1", headers=customer_headers)
        assert res.status_code == 400

    def test_removing_non_member_is_404(self, client, project, customer_headers):
        res = client.delete(f"{BASE}/{project['id']}/members/{MEMBER_ID}", headers=customer_headers)
        assert res.status_code == 404


# ═════════════════════════════════════════════════════════════════════════════
# Comments
# ═════════════════════════════════════════════════════════════════════════════


class TestComments:
    def test_thread_shared_between_customer_and_tester(
        self, client, assigned_project, customer_headers, tester_headers, admin_headers,
    ):
        pid = assigned_project["id"]
        res = client.post(f"{BASE}/{pid}/comments", json={"text": " Staging login is demo/demo "},
                          headers=customer_headers)
        assert res.status_code == 201
        assert res.get_json()["text"] == "Staging login is demo/demo"
        assert res.get_json()["author_name"] == "Cora Customer"

        res = client.post(f"{TESTER_BASE}/{pid}/comments", json={"text": "Thanks, starting today"},
                          headers=tester_headers)
        assert res.status_code == 201
        client.post(f"{BASE}/{pid}/comments", json={"text": "Due Friday"}, headers=admin_headers)

        res = client.get(f"{TESTER_BASE}/{pid}/comments", headers=tester_headers)
        thread = res.get_json()["items"]
        assert [c["author_id"] for c in thread] == ["customer-1", TESTER_ID, "admin-1"]
        assert thread[1]["author_name"] == "Tess Tester"
        assert thread[1]["author_role"] == "tester"

        project = client.get(f"{BASE}/{pid}", headers=customer_headers).get_json()
        assert len(project["comments"]) == 3
        task = client.get(f"{TESTER_BASE}/{pid}", headers=tester_headers).get_json()
        assert len(task["comments"]) == 3
        assert "member_ids" not in task

    def test_member_may_comment(self, client, invited, member_headers):
        res = client.post(f"{BASE}/{invited['id']}/comments", json={"text": "Looks good"}, headers=member_headers)
        assert res.status_code == 201

    @pytest.mark.parametrize("body", [{}, {"text": "   "}, {"text": ["hi"]}])
    def test_text_required(self, client, project, customer_headers, body):
        res = client.post(f"{BASE}/{project['id']}/comments", json=body, headers=customer_headers)
        assert res.status_code == 400

    def test_outsiders_cannot_read_thread(
        self, client, assigned_project, other_tester_headers, auth_headers, make_user,
    ):
        pid = assigned_project["id"]
        assert client.get(f"{TESTER_BASE}/{pid}/comments", headers=other_tester_headers).status_code == 403
        make_user(OTHER_CUSTOMER_ID, "customer")
        res = client.get(f"{BASE}/{pid}/comments", headers=auth_headers(OTHER_CUSTOMER_ID, "customer"))
        assert res.status_code == 403


# ═════════════════════════════════════════════════════════════════════════════
# Project attachments
# ═════════════════════════════════════════════════════════════════════════════


@pytest.fixture()
def test_case_id(client, assigned_project, admin_headers):
    pid = assigned_project["id"]
    base = f"/api/v1/admin/projects/{pid}/scenarios"
    sid = client.post(base, json={"title": "Search", "assigned_tester_id": TESTER_ID},
                      headers=admin_headers).get_json()["id"]
    return client.post(
        f"{base}/{sid}/test-cases",
        json={"title": "Results announced", "expected_result": "Live region", "steps": ["Search"]},
        headers=admin_headers,
    ).get_json()["id"]


class TestProjectAttachments:
    def test_tester_files_evidence(self, client, assigned_project, test_case_id, tester_headers):
        pid = assigned_project["id"]
        res = client.post(
            f"{TESTER_BASE}/{pid}/attachments",
            json={"name": "sr-log.txt", "size": 512, "type": "text/plain",
                  "url": "s3://bucket/sr-log.txt", "test_case_id": test_case_id},
            headers=tester_headers,
        )
        assert res.status_code == 201
        data = res.get_json()
        assert data["uploaded_by"] == TESTER_ID
        assert data["test_case_id"] == test_case_id

        listed = client.get(f"{TESTER_BASE}/{pid}/attachments", headers=tester_headers).get_json()
        assert [a["name"] for a in listed["items"]] == ["sr-log.txt"]
        task = client.get(f"{TESTER_BASE}/{pid}", headers=tester_headers).get_json()
        assert task["attachments"][0]["type"] == "text/plain"

    def test_without_test_case(self, client, assigned_project, tester_headers):
        res = client.post(
            f"{TESTER_BASE}/{assigned_project['id']}/attachments",
            json={"name": "overview.pdf", "size": 10, "type": "application/pdf"},
            headers=tester_headers,
        )
        assert res.status_code == 201
        assert res.get_json()["test_case_id"] is None

    def test_unknown_test_case_is_404(self, client, assigned_project, tester_headers):
        res = client.post(
            f"{TESTER_BASE}/{assigned_project['id']}/attachments",
            json={"name": "a.png", "size": 1, "type": "image/png", "test_case_id": 9999},
            headers=tester_headers,
        )
        assert res.status_code == 404

    def test_metadata_required(self, client, assigned_project, tester_headers):
        res = client.post(
            f"{TESTER_BASE}/{assigned_project['id']}/attachments",
            json={"name": "a.png", "size": "big"},
            headers=tester_headers,
        )
        assert res.status_code == 400
        assert set(res.get_json()["details"]) == {"size", "type"}

    def test_unassigned_tester_is_403(self, client, assigned_project, other_tester_headers):
        res = client.post(
            f"{TESTER_BASE}/{assigned_project['id']}/attachments",
            json={"name": "a.png", "size": 1, "type": "image/png"},
            headers=other_tester_headers,
        )
        assert res.status_code == 403

    def test_deleting_test_case_unlinks_attachment(
        self, client, assigned_project, test_case_id, tester_headers, admin_headers,
    ):
        pid = assigned_project["id"]
        client.post(
            f"{TESTER_BASE}/{pid}/attachments",
            json={"name": "a.png", "size": 1, "type": "image/png", "test_case_id": test_case_id},
            headers=tester_headers,
        )
        sid = client.get(f"/api/v1/admin/projects/{pid}/scenarios", headers=admin_headers).get_json()["items"][0]["id"]
        res = client.delete(
            f"/api/v1/admin/projects/{pid}/scenarios/{sid}/test-cases/{test_case_id}", headers=admin_headers,
        )
        assert res.status_code == 200

        listed = client.get(f"{TESTER_BASE}/{pid}/attachments", headers=tester_headers).get_json()
        assert listed["items"][0]["test_case_id"] is None

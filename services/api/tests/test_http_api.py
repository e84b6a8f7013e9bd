from uuid import uuid4

import jwt
from sqlalchemy import func, select

from wsp_api.core.identity import JwtIdentityProvider
from wsp_api.core.rate_limit import RateLimitTier, build_rate_limiters
from wsp_api.models.account import Account
from wsp_api.models.audit import AuditLog
from wsp_api.models.enums import AccountStatus, MembershipRole
from wsp_api.models.workspace import Membership, Profile, Workspace
from wsp_api.services import audit as audit_service

from conftest import TEST_SECRET, auth_headers, create_account, create_workspace_with_members


def _audit_actions(session_factory) -> list[str]:
    with session_factory() as session:
        return sorted(session.execute(select(AuditLog.action)).scalars())


def _count(session_factory, model, **filters) -> int:
    with session_factory() as session:
        stmt = select(func.count()).select_from(model)
        for column, value in filters.items():
            stmt = stmt.where(getattr(model, column) == value)
        return session.execute(stmt).scalar_one()


def test_health_live_returns_envelope_with_request_id(client):
    response = client.get("/api/health/live")

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["code"] == 200
    assert body["data"]["status"] == "ok"
    assert body["request_id"] == response.headers["X-Request-Id"]
    assert "X-Process-Time-Ms" in response.headers


def test_incoming_request_id_is_reused(client):
    response = client.get("/api/health/ready", headers={"X-Request-Id": "trace-abc-123"})

    assert response.status_code == 200
    assert response.json()["request_id"] == "trace-abc-123"
    assert response.json()["data"] == {"status": "ready", "database": "sqlite"}
    assert response.headers["X-Request-Id"] == "trace-abc-123"


def test_unknown_route_returns_error_envelope(client):
    response = client.get("/api/does-not-exist")

    assert response.status_code == 404
    body = response.json()
    assert body["success"] is False
    assert body["code"] == 404
    assert body["error"] == "NOT_FOUND"
    assert body["request_id"]


def test_signup_then_me(client, session_factory):
    response = client.post(
        "/api/signup",
        json={"email": "Alice@Example.com", "password": "StrongPassw0rd!", "full_name": "Alice"},
    )

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["token_type"] == "bearer"
    assert data["expires_in"] > 0
    assert data["account"]["email"] == "alice@example.com"

    me = client.get("/api/me", headers=auth_headers(data["access_token"]))
    assert me.status_code == 200
    me_data = me.json()["data"]
    assert me_data["account"]["id"] == data["account"]["id"]
    assert me_data["workspaces"] == []
    assert me_data["workspace_count"] == 0
    assert _audit_actions(session_factory) == ["signup_success"]


def test_signup_duplicate_email_conflicts(client):
    payload = {"email": "alice@example.com", "password": "StrongPassw0rd!"}
    assert client.post("/api/signup", json=payload).status_code == 201

    response = client.post("/api/signup", json={**payload, "email": "ALICE@example.com"})

    assert response.status_code == 409
    assert response.json()["error"] == "CONFLICT"


def test_signup_with_remote_identity_provider_writes_nothing(app, client, settings, session_factory):
    app.state.token_issuer = JwtIdentityProvider(
        settings.model_copy(
            update={"auth_jwks_url": "https://idp.example.com/.well-known/jwks.json", "auth_jwt_algorithms": "RS256"}
        )
    )
    payload = {"email": "alice@example.com", "password": "StrongPassw0rd!"}

    first = client.post("/api/signup", json=payload)
    second = client.post("/api/signup", json=payload)

    assert first.status_code == 400
    assert first.json()["message"] == "Local sign-in is not available with a remote identity provider"
    # 重试不会因残留账号变成 409。
    assert second.status_code == 400
    assert _count(session_factory, Account) == 0
    assert _audit_actions(session_factory) == []


def test_signup_validation_error_is_400(client):
    response = client.post("/api/signup", json={"email": "alice@example.com", "password": "short"})

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "VALIDATION_FAILED"
    assert "password" in body["message"]


def test_login_success_and_failure_are_audited(client, session_factory):
    client.post("/api/signup", json={"email": "alice@example.com", "password": "StrongPassw0rd!"})

    ok = client.post("/api/login", json={"email": "alice@example.com", "password": "StrongPassw0rd!"})
    assert ok.status_code == 200
    assert ok.json()["data"]["access_token"]

    bad = client.post("/api/login", json={"email": "alice@example.com", "password": "wrong-password"})
    assert bad.status_code == 401
    assert bad.json()["message"] == "Invalid email or password"

    unknown = client.post("/api/login", json={"email": "nobody@example.com", "password": "whatever1"})
    assert unknown.status_code == 401

    assert _audit_actions(session_factory) == ["login_failed", "login_success", "signup_success"]


def test_missing_token_is_unauthorized(client):
    response = client.get("/api/me")

    assert response.status_code == 401
    assert response.json()["error"] == "UNAUTHORIZED"
    assert response.headers["WWW-Authenticate"] == "Bearer"


def test_invalid_token_is_rejected(client):
    response = client.get("/api/me", headers=auth_headers("not-a-token"))

    assert response.status_code == 401
    assert response.json()["error"] == "INVALID_TOKEN"


def test_token_with_non_uuid_subject_is_rejected(client):
    token = jwt.encode({"sub": "not-a-uuid"}, TEST_SECRET, algorithm="HS256")

    response = client.get("/api/me", headers=auth_headers(token))

    assert response.status_code == 401
    assert response.json()["error"] == "INVALID_TOKEN"


def test_token_for_unknown_account_is_unauthorized(client, issue_token):
    ghost = Account(id=uuid4(), email="ghost@example.com")

    response = client.get("/api/me", headers=auth_headers(issue_token(ghost)))

    assert response.status_code == 401
    assert response.json()["error"] == "UNAUTHORIZED"


def test_suspended_account_is_blocked(client, db_session, issue_token):
    account = create_account(db_session, email="sam@example.com", status=AccountStatus.SUSPENDED)

    response = client.get("/api/me", headers=auth_headers(issue_token(account)))

    assert response.status_code == 403
    body = response.json()
    assert body["error"] == "ACCOUNT_INACTIVE"
    assert body["message"] == "Account is suspended"


def test_malformed_workspace_header_is_rejected(client, db_session, issue_token):
    account = create_account(db_session, email="alice@example.com")

    response = client.get("/api/me", headers=auth_headers(issue_token(account), "not-a-uuid"))

    assert response.status_code == 400
    assert response.json()["error"] == "VALIDATION_FAILED"


def test_create_workspace_makes_caller_admin(client, db_session, session_factory, issue_token):
    owner = create_account(db_session, email="owner@example.com", full_name="Olivia")
    token = issue_token(owner)

    response = client.post("/api/workspaces", json={"name": "Research"}, headers=auth_headers(token))

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["workspace"]["name"] == "Research"
    assert data["membership"]["role"] == "admin"
    assert data["profile"]["name"] == "Olivia"

    me = client.get("/api/me", headers=auth_headers(token)).json()["data"]
    assert me["workspace_count"] == 1
    assert me["workspaces"][0]["role"] == "admin"

    listed = client.get("/api/workspaces", headers=auth_headers(token)).json()["data"]
    assert [item["name"] for item in listed["workspaces"]] == ["Research"]
    assert _audit_actions(session_factory) == ["workspace_created"]


def test_workspace_routes_require_matching_header(client, db_session, issue_token):
    owner = create_account(db_session, email="owner@example.com")
    workspace = create_workspace_with_members(db_session, owner=owner)
    other = create_workspace_with_members(db_session, owner=owner, name="Other")
    token = issue_token(owner)

    missing = client.get(f"/api/workspaces/{workspace.id}", headers=auth_headers(token))
    assert missing.status_code == 400
    assert missing.json()["error"] == "MISSING_PARAMETER"

    mismatch = client.get(f"/api/workspaces/{workspace.id}", headers=auth_headers(token, other.id))
    assert mismatch.status_code == 403

    ok = client.get(f"/api/workspaces/{workspace.id}", headers=auth_headers(token, workspace.id))
    assert ok.status_code == 200
    assert ok.json()["data"]["member_count"] == 1


def test_non_member_cannot_read_workspace(client, db_session, issue_token):
    owner = create_account(db_session, email="owner@example.com")
    outsider = create_account(db_session, email="outsider@example.com")
    workspace = create_workspace_with_members(db_session, owner=owner)

    response = client.get(f"/api/workspaces/{workspace.id}", headers=auth_headers(issue_token(outsider), workspace.id))

    assert response.status_code == 403
    assert response.json()["error"] == "FORBIDDEN"


def test_regular_member_cannot_administer_workspace(client, db_session, issue_token):
    owner = create_account(db_session, email="owner@example.com")
    bob = create_account(db_session, email="bob@example.com")
    workspace = create_workspace_with_members(db_session, owner=owner, members={bob.id: MembershipRole.USER})
    headers = auth_headers(issue_token(bob), workspace.id)

    assert client.get(f"/api/workspaces/{workspace.id}/members", headers=headers).status_code == 200
    assert client.patch(f"/api/workspaces/{workspace.id}", json={"name": "Mine"}, headers=headers).status_code == 403
    assert client.delete(f"/api/workspaces/{workspace.id}", headers=headers).status_code == 403


def test_admin_updates_workspace_and_member_updates_own_profile(client, db_session, issue_token):
    owner = create_account(db_session, email="owner@example.com")
    bob = create_account(db_session, email="bob@example.com")
    workspace = create_workspace_with_members(db_session, owner=owner, members={bob.id: MembershipRole.USER})

    renamed = client.patch(
        f"/api/workspaces/{workspace.id}",
        json={"name": "Renamed", "description": "Updated"},
        headers=auth_headers(issue_token(owner), workspace.id),
    )
    assert renamed.status_code == 200
    assert renamed.json()["data"]["name"] == "Renamed"

    profile = client.patch(
        f"/api/workspaces/{workspace.id}/profile",
        json={"name": "Bobby"},
        headers=auth_headers(issue_token(bob), workspace.id),
    )
    assert profile.status_code == 200
    assert profile.json()["data"]["profile"]["name"] == "Bobby"
    assert profile.json()["data"]["profile"]["account_id"] == str(bob.id)


def test_admin_adds_member(client, db_session, session_factory, issue_token):
    owner = create_account(db_session, email="owner@example.com")
    bob = create_account(db_session, email="bob@example.com", full_name="Bob")
    workspace = create_workspace_with_members(db_session, owner=owner)
    headers = auth_headers(issue_token(owner), workspace.id)
    url = f"/api/workspaces/{workspace.id}/members"

    created = client.post(url, json={"account_id": str(bob.id), "role": "user"}, headers=headers)
    assert created.status_code == 201
    assert created.json()["data"]["profile"]["name"] == "Bob"

    duplicate = client.post(url, json={"account_id": str(bob.id)}, headers=headers)
    assert duplicate.status_code == 409

    carol = create_account(db_session, email="carol@example.com")
    invalid = client.post(url, json={"account_id": str(carol.id), "role": "owner"}, headers=headers)
    assert invalid.status_code == 400
    assert invalid.json()["message"] == "Invalid role: owner. Must be one of: admin, user"

    assert _count(session_factory, Membership, workspace_id=workspace.id) == 2
    assert "member_added" in _audit_actions(session_factory)


def test_member_can_leave_but_not_remove_others(client, db_session, session_factory, issue_token):
    owner = create_account(db_session, email="owner@example.com")
    bob = create_account(db_session, email="bob@example.com")
    carol = create_account(db_session, email="carol@example.com")
    workspace = create_workspace_with_members(
        db_session,
        owner=owner,
        members={bob.id: MembershipRole.USER, carol.id: MembershipRole.USER},
    )
    headers = auth_headers(issue_token(bob), workspace.id)

    other = client.delete(f"/api/workspaces/{workspace.id}/members/{carol.id}", headers=headers)
    assert other.status_code == 403

    own = client.delete(f"/api/workspaces/{workspace.id}/members/{bob.id}", headers=headers)
    assert own.status_code == 200
    assert own.json()["data"] == {"workspace_id": str(workspace.id), "account_id": str(bob.id)}
    assert _count(session_factory, Membership, workspace_id=workspace.id, account_id=bob.id) == 0
    assert _count(session_factory, Profile, workspace_id=workspace.id, account_id=bob.id) == 0


def test_last_admin_cannot_leave_or_be_demoted(client, db_session, session_factory, issue_token):
    owner = create_account(db_session, email="owner@example.com")
    workspace = create_workspace_with_members(db_session, owner=owner)
    headers = auth_headers(issue_token(owner), workspace.id)

    demote = client.put(
        f"/api/workspaces/{workspace.id}/members/{owner.id}",
        json={"role": "user"},
        headers=headers,
    )
    leave = client.delete(f"/api/workspaces/{workspace.id}/members/{owner.id}", headers=headers)

    for response in (demote, leave):
        assert response.status_code == 400
        assert response.json()["message"] == "Cannot remove the last admin of the workspace"
    assert _count(session_factory, Membership, workspace_id=workspace.id, role=MembershipRole.ADMIN) == 1


def test_admin_promotes_member(client, db_session, session_factory, issue_token):
    owner = create_account(db_session, email="owner@example.com")
    bob = create_account(db_session, email="bob@example.com")
    workspace = create_workspace_with_members(db_session, owner=owner, members={bob.id: MembershipRole.USER})

    response = client.put(
        f"/api/workspaces/{workspace.id}/members/{bob.id}",
        json={"role": "admin"},
        headers=auth_headers(issue_token(owner), workspace.id),
    )

    assert response.status_code == 200
    assert response.json()["data"]["membership"]["role"] == "admin"
    with session_factory() as session:
        log = session.execute(select(AuditLog).where(AuditLog.action == "member_role_updated")).scalar_one()
        assert log.details == {"previous_role": "user", "role": "admin"}
        assert log.target_email == "bob@example.com"


def test_workspace_admin_deletes_workspace(client, db_session, session_factory, issue_token):
    owner = create_account(db_session, email="owner@example.com")
    bob = create_account(db_session, email="bob@example.com")
    workspace = create_workspace_with_members(db_session, owner=owner, members={bob.id: MembershipRole.USER})

    response = client.delete(f"/api/workspaces/{workspace.id}", headers=auth_headers(issue_token(owner), workspace.id))

    assert response.status_code == 200
    assert response.json()["data"] == {"deleted_workspace_id": str(workspace.id), "workspace_name": "Research"}
    assert _count(session_factory, Workspace, id=workspace.id) == 0
    assert _count(session_factory, Membership, workspace_id=workspace.id) == 0
    assert _count(session_factory, Profile, workspace_id=workspace.id) == 0


def test_account_routes_are_owner_only(client, db_session, issue_token):
    alice = create_account(db_session, email="alice@example.com")
    bob = create_account(db_session, email="bob@example.com")
    token = issue_token(alice)

    assert client.get(f"/api/accounts/{alice.id}", headers=auth_headers(token)).status_code == 200
    assert client.get(f"/api/accounts/{bob.id}", headers=auth_headers(token)).status_code == 403

    updated = client.patch(f"/api/accounts/{alice.id}", json={"full_name": "Alice A."}, headers=auth_headers(token))
    assert updated.status_code == 200
    assert updated.json()["data"]["account"]["full_name"] == "Alice A."

    forbidden = client.patch(f"/api/accounts/{bob.id}", json={"full_name": "Hacked"}, headers=auth_headers(token))
    assert forbidden.status_code == 403


def test_super_admin_bypasses_workspace_and_owner_checks(client, db_session, issue_token):
    root = create_account(db_session, email="root@example.com", is_super_admin=True)
    owner = create_account(db_session, email="owner@example.com")
    workspace = create_workspace_with_members(db_session, owner=owner)
    token = issue_token(root)

    assert client.get(f"/api/accounts/{owner.id}", headers=auth_headers(token)).status_code == 200
    detail = client.get(f"/api/workspaces/{workspace.id}", headers=auth_headers(token, workspace.id))
    assert detail.status_code == 200


def test_admin_routes_require_super_admin(client, db_session, issue_token):
    alice = create_account(db_session, email="alice@example.com")
    owner = create_account(db_session, email="owner@example.com")
    workspace = create_workspace_with_members(db_session, owner=owner)

    response = client.get("/api/admin/accounts", headers=auth_headers(issue_token(alice)))
    assert response.status_code == 403

    # 工作空间管理员角色不等于全局超级管理员。
    response = client.get("/api/admin/workspaces", headers=auth_headers(issue_token(owner), workspace.id))
    assert response.status_code == 403


def test_super_admin_lists_resources(client, db_session, issue_token):
    root = create_account(db_session, email="root@example.com", is_super_admin=True)
    owner = create_account(db_session, email="owner@example.com")
    create_workspace_with_members(db_session, owner=owner)
    headers = auth_headers(issue_token(root))

    accounts = client.get("/api/admin/accounts", params={"limit": 1}, headers=headers)
    assert accounts.status_code == 200
    assert accounts.json()["data"]["pagination"] == {"page": 1, "limit": 1, "total": 2, "pages": 2}

    workspaces = client.get("/api/admin/workspaces", headers=headers).json()["data"]
    assert workspaces["workspaces"][0]["member_count"] == 1
    assert workspaces["workspaces"][0]["owner"]["email"] == "owner@example.com"

    memberships = client.get("/api/admin/memberships", params={"account_id": str(owner.id)}, headers=headers)
    assert memberships.json()["data"]["pagination"]["total"] == 1

    too_large = client.get("/api/admin/accounts", params={"limit": 500}, headers=headers)
    assert too_large.status_code == 400


def test_super_admin_creates_account_and_workspace(client, db_session, session_factory, issue_token):
    root = create_account(db_session, email="root@example.com", is_super_admin=True)
    headers = auth_headers(issue_token(root))

    created = client.post("/api/admin/accounts", json={"email": "New@Example.com", "full_name": "Newbie"}, headers=headers)
    assert created.status_code == 201
    account_id = created.json()["data"]["account"]["id"]
    assert created.json()["data"]["account"]["email"] == "new@example.com"

    workspace = client.post(
        "/api/admin/workspaces",
        json={"account_id": account_id, "name": "Provisioned"},
        headers=headers,
    )
    assert workspace.status_code == 201
    assert workspace.json()["data"]["membership"]["account_id"] == account_id
    assert workspace.json()["data"]["membership"]["role"] == "admin"

    workspace_id = workspace.json()["data"]["workspace"]["id"]
    deleted = client.delete(f"/api/admin/workspaces/{workspace_id}", headers=headers)
    assert deleted.status_code == 200
    assert _count(session_factory, Membership) == 0


def test_super_admin_suspends_account(client, db_session, session_factory, issue_token):
    root = create_account(db_session, email="root@example.com", is_super_admin=True)
    alice = create_account(db_session, email="alice@example.com")

    response = client.put(
        f"/api/admin/accounts/{alice.id}/status",
        json={"status": "suspended"},
        headers=auth_headers(issue_token(root)),
    )

    assert response.status_code == 200
    assert response.json()["data"]["account"]["status"] == "suspended"
    assert response.json()["message"] == "Account status updated to: suspended"

    blocked = client.get("/api/me", headers=auth_headers(issue_token(alice)))
    assert blocked.status_code == 403
    assert blocked.json()["error"] == "ACCOUNT_INACTIVE"

    with session_factory() as session:
        log = session.execute(select(AuditLog).where(AuditLog.action == "account_status_updated")).scalar_one()
        assert log.actor_email == "root@example.com"
        assert log.target_email == "alice@example.com"
        assert log.details == {"previous_status": "active", "status": "suspended"}


def test_super_admin_grants_super_role(client, db_session, issue_token):
    root = create_account(db_session, email="root@example.com", is_super_admin=True)
    alice = create_account(db_session, email="alice@example.com")

    response = client.put(
        f"/api/admin/accounts/{alice.id}/role",
        json={"is_super_admin": True},
        headers=auth_headers(issue_token(root)),
    )

    assert response.status_code == 200
    assert response.json()["message"] == "Account role updated to SuperAdmin: true"
    assert client.get("/api/admin/accounts", headers=auth_headers(issue_token(alice))).status_code == 200


def test_status_update_succeeds_when_audit_write_fails(client, db_session, session_factory, issue_token, monkeypatch):
    root = create_account(db_session, email="root@example.com", is_super_admin=True)
    alice = create_account(db_session, email="alice@example.com")

    def _broken(*args, **kwargs):
        raise RuntimeError("audit storage unavailable")

    monkeypatch.setattr(audit_service, "_build_entry", _broken)

    response = client.put(
        f"/api/admin/accounts/{alice.id}/status",
        json={"status": "inactive"},
        headers=auth_headers(issue_token(root)),
    )

    assert response.status_code == 200
    with session_factory() as session:
        assert session.get(Account, alice.id).status == AccountStatus.INACTIVE
    assert _audit_actions(session_factory) == []


def test_admin_audit_log_endpoints(client, db_session, issue_token):
    root = create_account(db_session, email="root@example.com", is_super_admin=True)
    alice = create_account(db_session, email="alice@example.com")
    headers = auth_headers(issue_token(root))
    client.put(f"/api/admin/accounts/{alice.id}/status", json={"status": "suspended"}, headers=headers)
    client.put(f"/api/admin/accounts/{alice.id}/status", json={"status": "active"}, headers=headers)

    logs = client.get("/api/admin/audit-logs", params={"action": "account_status_updated"}, headers=headers)
    assert logs.status_code == 200
    data = logs.json()["data"]
    assert data["pagination"]["total"] == 2
    assert data["pagination"]["limit"] == 50
    assert data["audit_logs"][0]["target_id"] == str(alice.id)

    stats = client.get("/api/admin/audit-logs/stats", params={"days": 7}, headers=headers)
    assert stats.status_code == 200
    assert stats.json()["data"]["period_days"] == 7
    assert stats.json()["data"]["action_stats"] == [{"action": "account_status_updated", "count": 2}]

    out_of_range = client.get("/api/admin/audit-logs/stats", params={"days": 0}, headers=headers)
    assert out_of_range.status_code == 400


def test_auth_routes_are_rate_limited_per_client(app, client, settings):
    app.state.rate_limiters = build_rate_limiters(settings.model_copy(update={"rate_limit_auth_max": 2}))
    payload = {"email": "nobody@example.com", "password": "whatever1"}

    assert client.post("/api/login", json=payload).status_code == 401
    assert client.post("/api/login", json=payload).status_code == 401

    limited = client.post("/api/login", json=payload)
    assert limited.status_code == 429
    assert limited.json()["error"] == "TOO_MANY_REQUESTS"

    other_client = client.post("/api/login", json=payload, headers={"X-Forwarded-For": "198.51.100.9"})
    assert other_client.status_code == 401

    # 各档位独立计数。
    assert app.state.rate_limiters[RateLimitTier.STANDARD].allow("testclient") is True

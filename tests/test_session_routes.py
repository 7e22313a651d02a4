"""Tests for the session administration endpoints."""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.testclient import TestClient

USER = {"id": "u1", "email": "ana@example.com", "access_token": "secret-token"}


def _seed(client: TestClient, app: FastAPI, *session_ids: str, user_id: str = "u1") -> None:
    sessions = app.state.container.sessions
    for session_id in session_ids:
        client.portal.call(sessions.create_session, session_id, user_id, USER, {"device": "web"})


def test_list_user_sessions_hides_user_payload(
    client: TestClient, app: FastAPI, auth_headers: dict
) -> None:
    _seed(client, app, "s1", "s2")

    response = client.get("/sessions/users/u1", headers=auth_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["userId"] == "u1"
    assert sorted(s["sessionId"] for s in body["sessions"]) == ["s1", "s2"]
    assert body["sessions"][0]["metadata"] == {"device": "web"}
    assert "secret-token" not in response.text


def test_list_unknown_user_is_empty(client: TestClient, auth_headers: dict) -> None:
    response = client.get("/sessions/users/nobody", headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["sessions"] == []


def test_revoke_all_but_current(client: TestClient, app: FastAPI, auth_headers: dict) -> None:
    _seed(client, app, "s1", "s2", "s3")

    response = client.delete(
        "/sessions/users/u1",
        params={"except_session_id": "s2"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert response.json() == {"userId": "u1", "revoked": 2, "keptSessionId": "s2"}
    remaining = client.get("/sessions/users/u1", headers=auth_headers).json()["sessions"]
    assert [s["sessionId"] for s in remaining] == ["s2"]


def test_session_stats(client: TestClient, app: FastAPI, auth_headers: dict) -> None:
    _seed(client, app, "s1", "s2")
    _seed(client, app, "s3", user_id="u2")

    response = client.get("/sessions/stats", headers=auth_headers)

    assert response.status_code == 200
    assert response.json() == {"enabled": True, "totalSessions": 3, "userCount": 2}


def test_session_routes_require_api_key(client: TestClient) -> None:
    assert client.get("/sessions/stats").status_code == 403
    assert client.delete("/sessions/users/u1").status_code == 403

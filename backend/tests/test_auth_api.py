import pytest
from fastapi import WebSocketDisconnect

from coachdesk.models import CoachStudentPair, Role
from coachdesk.realtime.identity import USER_UPDATED, auth_event

from conftest import PASSWORD, auth_headers, token_for


def _register(client, **overrides):
    payload = {
        "email": "ogrenci@example.com",
        "password": "supersecure",
        "first_name": "Elif",
        "last_name": "Kaya",
        "username": "elifkaya",
        "role": "student",
    }
    payload.update(overrides)
    return client.post("/auth/register", json=payload)


def test_register_and_login_flow(client):
    register_response = _register(client)
    assert register_response.status_code == 200
    tokens = register_response.json()
    assert tokens["access_token"]
    assert tokens["token_type"] == "bearer"

    login_response = client.post(
        "/auth/login",
        json={"email": "ogrenci@example.com", "password": "supersecure"},
    )
    assert login_response.status_code == 200

    session = client.get(
        "/auth/session",
        headers={"Authorization": f"Bearer {login_response.json()['access_token']}"},
    )
    assert session.status_code == 200
    body = session.json()
    assert body["email"] == "ogrenci@example.com"
    assert body["profile"]["role"] == "student"
    assert body["profile"]["username"] == "elifkaya"


def test_register_rejects_duplicates(client):
    assert _register(client).status_code == 200

    same_email = _register(client, username="baska")
    assert same_email.status_code == 400
    assert same_email.json()["detail"] == "Email already registered"

    same_username = _register(client, email="baska@example.com")
    assert same_username.status_code == 400
    assert same_username.json()["detail"] == "Username already taken"


def test_register_cannot_create_admins(client):
    assert _register(client, role="admin").status_code == 422


def test_student_can_pick_a_coach_on_signup(client, db_session, coach):
    response = _register(client, coach_id=coach.id)

    assert response.status_code == 200
    pair = db_session.query(CoachStudentPair).filter(CoachStudentPair.coach_id == coach.id).one()
    assert pair.chat_enabled is True


def test_signup_coach_must_be_a_coach(client, student):
    assert _register(client, coach_id="missing").status_code == 404
    assert _register(client, coach_id=student.id).status_code == 400


def test_only_students_choose_a_coach(client, coach):
    response = _register(client, role="coach", coach_id=coach.id)

    assert response.status_code == 400


def test_login_with_wrong_password(client, student):
    response = client.post("/auth/login", json={"email": student.email, "password": "wrong"})

    assert response.status_code == 401


def test_refresh_requires_refresh_token(client, student):
    tokens = client.post("/auth/login", json={"email": student.email, "password": PASSWORD}).json()

    refreshed = client.post("/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert refreshed.status_code == 200
    assert refreshed.json()["access_token"]

    misused = client.post("/auth/refresh", json={"refresh_token": tokens["access_token"]})
    assert misused.status_code == 401


def test_protected_routes_require_a_valid_token(client):
    assert client.get("/auth/session").status_code == 401
    response = client.get("/auth/session", headers={"Authorization": "Bearer nope"})
    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"


def test_check_username_and_coach_directory(client, coach, student):
    taken = client.post("/auth/check-username", json={"username": coach.username})
    free = client.post("/auth/check-username", json={"username": "bos-kullanici"})
    assert taken.json() == {"exists": True}
    assert free.json() == {"exists": False}

    coaches = client.get("/auth/coaches").json()
    assert [c["id"] for c in coaches] == [coach.id]


def test_session_socket_follows_updates_and_sign_out(client, feed, student):
    with client.websocket_connect(f"/auth/ws?token={token_for(student)}") as websocket:
        initial = websocket.receive_json()
        assert initial["loading"] is False
        assert initial["user_id"] == student.id
        assert initial["profile"]["role"] == Role.STUDENT.value

        feed.publish(auth_event(student.id, USER_UPDATED))
        assert websocket.receive_json()["user_id"] == student.id

        assert client.post("/auth/logout", headers=auth_headers(student)).json() == {
            "message": "Signed out"
        }
        assert websocket.receive_json() == {"loading": False, "user_id": None, "profile": None}
        with pytest.raises(WebSocketDisconnect):
            websocket.receive_json()


def test_session_socket_without_session_is_closed(client):
    with client.websocket_connect("/auth/ws?token=bad") as websocket:
        assert websocket.receive_json() == {"loading": False, "user_id": None, "profile": None}
        with pytest.raises(WebSocketDisconnect) as excinfo:
            websocket.receive_json()
    assert excinfo.value.code == 1008

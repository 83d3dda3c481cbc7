from coachdesk.models import Role, User

from conftest import PASSWORD, auth_headers, reload


def test_read_and_update_profile(client, student, make_user):
    taken = make_user(Role.STUDENT, username="alinmis")

    me = client.get("/profiles/me", headers=auth_headers(student))
    assert me.status_code == 200
    assert me.json()["id"] == student.id
    assert me.json()["created_at"].endswith("Z")

    updated = client.patch(
        "/profiles/me",
        json={"first_name": "Zeynep"},
        headers=auth_headers(student),
    )
    assert updated.json()["first_name"] == "Zeynep"
    assert updated.json()["last_name"] == student.last_name

    clash = client.patch(
        "/profiles/me",
        json={"username": taken.username},
        headers=auth_headers(student),
    )
    assert clash.status_code == 400


def test_change_password(client, student):
    def change(current, new, confirm=None):
        return client.post(
            "/profiles/me/password",
            json={
                "current_password": current,
                "new_password": new,
                "confirm_password": confirm or new,
            },
            headers=auth_headers(student),
        )

    assert change("wrong", "newpassword").status_code == 400
    assert change(PASSWORD, "newpassword", "different").status_code == 400
    assert change(PASSWORD, "abc").status_code == 400
    assert change(PASSWORD, PASSWORD).status_code == 400
    assert change(PASSWORD, "newpassword").status_code == 200

    login = client.post("/auth/login", json={"email": student.email, "password": "newpassword"})
    assert login.status_code == 200


def test_change_email(client, db_session, student, coach):
    wrong = client.post(
        "/profiles/me/email",
        json={"new_email": "yeni@example.com", "password": "wrong"},
        headers=auth_headers(student),
    )
    taken = client.post(
        "/profiles/me/email",
        json={"new_email": coach.email, "password": PASSWORD},
        headers=auth_headers(student),
    )
    changed = client.post(
        "/profiles/me/email",
        json={"new_email": "yeni@example.com", "password": PASSWORD},
        headers=auth_headers(student),
    )

    assert wrong.status_code == 400
    assert taken.status_code == 400
    assert changed.status_code == 200
    assert changed.json()["email"] == "yeni@example.com"
    assert reload(db_session, User, student.id).email == "yeni@example.com"


def test_my_coach(client, coach, student, pair_users):
    assert client.get("/profiles/me/coach", headers=auth_headers(student)).status_code == 404

    pair_users(coach, student)
    response = client.get("/profiles/me/coach", headers=auth_headers(student))

    assert response.status_code == 200
    assert response.json()["id"] == coach.id
    assert client.get("/profiles/me/coach", headers=auth_headers(coach)).status_code == 403

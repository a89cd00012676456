"""
tests/test_users.py -- Integration tests for /user routes.

Covers:
  - registration: 201, confirmation mail, duplicate email, blank fields
  - login: wrong password vs unconfirmed email, cookie + no-store on success
  - email confirmation: redeem once, second redeem rejected, bad token
  - session errors: no_token vs invalid_token, wrong token type
  - GET /user groups patients by role
"""

from __future__ import annotations


def _register(api, email, first="Ada", last="Lovelace", password="testpass123"):
    return api.client.post(
        "/user/register",
        json={"firstName": first, "lastName": last, "email": email, "password": password},
    )


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


def test_register_creates_unconfirmed_user_and_mails_link(api):
    api.mailer.reset_mock()
    resp = _register(api, "Ada@Example.com")
    assert resp.status_code == 201
    data = resp.json()
    assert data["email"] == "ada@example.com"
    assert data["firstName"] == "Ada"
    assert data["isConfirmed"] is False
    assert "password" not in data and "hashedPassword" not in data

    api.mailer.send.assert_called_once()
    to, _subject, body = api.mailer.send.call_args.args
    assert to == "ada@example.com"
    assert "/verify/" in body


def test_register_duplicate_email_rejected(api):
    _register(api, "dup@example.com")
    resp = _register(api, "DUP@example.com")
    assert resp.status_code == 400
    assert resp.json()["message"] == "This email is associated with an account already."


def test_register_missing_field_rejected(api):
    resp = api.client.post("/user/register", json={"firstName": "A", "email": "x@example.com", "password": "pw"})
    assert resp.status_code == 400
    assert resp.json()["message"] == "Please fill out all fields"


def test_register_blank_field_rejected(api):
    resp = _register(api, "blank@example.com", first="")
    assert resp.status_code == 400
    assert resp.json()["message"] == "Please fill out all fields"


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


def test_login_wrong_password(api):
    api.make_user("wrongpw@example.com")
    resp = api.client.post("/user/login", json={"email": "wrongpw@example.com", "password": "nope"})
    assert resp.status_code == 400
    assert resp.json()["message"] == "Invalid credentials"


def test_login_unknown_email_same_as_wrong_password(api):
    resp = api.client.post("/user/login", json={"email": "ghost@example.com", "password": "nope"})
    assert resp.status_code == 400
    assert resp.json()["message"] == "Invalid credentials"


def test_login_unconfirmed_email(api):
    api.make_user("unconfirmed@example.com", confirmed=False)
    resp = api.client.post("/user/login", json={"email": "unconfirmed@example.com", "password": api.password})
    assert resp.status_code == 400
    assert resp.json()["message"] == "Please confirm your email"


def test_login_success_sets_cookie(api):
    uid, _ = api.make_user("login@example.com", first_name="Grace")
    resp = api.client.post("/user/login", json={"email": "login@example.com", "password": api.password})
    try:
        assert resp.status_code == 200
        data = resp.json()
        assert data["message"] == "Logged in Successfully"
        assert data["id"] == uid
        assert data["firstName"] == "Grace"
        assert data["accessToken"]
        assert resp.headers["Cache-Control"] == "no-store"
        assert "access_token" in resp.cookies

        # The cookie alone is enough for an authenticated request.
        me = api.client.get("/user")
        assert me.status_code == 200
        assert me.json()["id"] == uid
    finally:
        api.client.cookies.clear()


def test_logout_clears_cookie(api):
    api.make_user("logout@example.com")
    api.client.post("/user/login", json={"email": "logout@example.com", "password": api.password})
    resp = api.client.post("/user/logout")
    api.client.cookies.clear()
    assert resp.status_code == 200
    assert "access_token" in resp.headers.get("set-cookie", "")


# ---------------------------------------------------------------------------
# Email confirmation
# ---------------------------------------------------------------------------


def test_verification_flow(api):
    api.mailer.reset_mock()
    _register(api, "verify@example.com")
    token = api.mailed_token("/verify/")

    resp = api.client.post(f"/user/verification/{token}")
    assert resp.status_code == 200
    assert resp.json()["message"] == "Email successfully confirmed."
    assert api.user_store.get_by_email("verify@example.com").is_confirmed

    again = api.client.post(f"/user/verification/{token}")
    assert again.status_code == 400
    assert again.json()["code"] == "already_confirmed"

    login = api.client.post("/user/login", json={"email": "verify@example.com", "password": api.password})
    api.client.cookies.clear()
    assert login.status_code == 200


def test_verification_bad_token(api):
    resp = api.client.post("/user/verification/not-a-token")
    assert resp.status_code == 401
    assert resp.json()["code"] == "invalid_token"


def test_session_token_cannot_confirm_email(api):
    from auth.tokens import create_access_token

    uid, _ = api.make_user("sessverify@example.com", confirmed=False)
    token = create_access_token(uid, "sessverify@example.com")
    resp = api.client.post(f"/user/verification/{token}")
    assert resp.status_code == 401
    assert not api.user_store.get_by_id(uid).is_confirmed


def test_resend_verification_mails_unconfirmed_user(api):
    api.make_user("resend@example.com", confirmed=False)
    api.mailer.reset_mock()
    resp = api.client.post("/user/verification/resend", json={"email": "resend@example.com"})
    assert resp.status_code == 200
    api.mailer.send.assert_called_once()
    token = api.mailed_token("/verify/")
    assert api.client.post(f"/user/verification/{token}").status_code == 200


def test_resend_verification_same_reply_for_unknown_email(api):
    api.make_user("resendok@example.com", confirmed=True)
    api.mailer.reset_mock()
    known = api.client.post("/user/verification/resend", json={"email": "resendok@example.com"})
    unknown = api.client.post("/user/verification/resend", json={"email": "nobody@example.com"})
    assert known.status_code == unknown.status_code == 200
    assert known.json() == unknown.json()
    api.mailer.send.assert_not_called()


# ---------------------------------------------------------------------------
# Session errors
# ---------------------------------------------------------------------------


def test_no_token(api):
    resp = api.client.get("/user")
    assert resp.status_code == 401
    assert resp.json() == {"code": "no_token", "message": "No authorization token found", "detail": None}


def test_invalid_token(api):
    resp = api.client.get("/user", headers={"Authorization": "Bearer garbage"})
    assert resp.status_code == 401
    assert resp.json() == {"code": "invalid_token", "message": "Invalid authorization token", "detail": None}


def test_verification_token_is_not_a_session(api):
    from auth.tokens import create_verification_token

    uid, _ = api.make_user("typ@example.com")
    user = api.user_store.get_by_id(uid)
    resp = api.client.get("/user", headers={"Authorization": f"Bearer {create_verification_token(user)}"})
    assert resp.status_code == 401
    assert resp.json()["code"] == "invalid_token"


# ---------------------------------------------------------------------------
# GET /user
# ---------------------------------------------------------------------------


def test_me_groups_patients_by_role(api):
    coord_id, coord_h = api.make_user("me-coord@example.com")
    carer_id, carer_h = api.make_user("me-carer@example.com")
    pid = api.client.post("/patient", json={"firstName": "Ida", "lastName": "Moss"}, headers=coord_h).json()["id"]
    api.care.add_carer(pid, carer_id)

    coord = api.client.get("/user", headers=coord_h).json()
    assert [p["id"] for p in coord["coordinator"]] == [pid]
    assert coord["carer"] == []

    carer = api.client.get("/user", headers=carer_h).json()
    assert carer["coordinator"] == []
    assert [p["id"] for p in carer["carer"]] == [pid]
    assert carer["carer"][0]["coordinator"] == coord_id

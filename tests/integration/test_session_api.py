from fastapi.testclient import TestClient

SIGNUP = {"email": "donor@example.com", "password": "secret123", "role": "donor"}


def _bearer(response):
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


def test_root_and_health(client):
    assert client.get("/").json()["service"] == "foodbridge-backend"
    assert client.get("/health").json() == {"status": "healthy"}


def test_session_requires_bearer_token(client):
    r = client.get("/session")
    assert r.status_code == 401
    assert r.json()["detail"] == "Missing bearer token"


def test_no_token_is_accepted_before_sign_in(client):
    r = client.get("/session", headers={"Authorization": "Bearer anything"})
    assert r.status_code == 401
    assert r.json()["detail"] == "Invalid access token"


def test_register_update_logout_login(client):
    r = client.post("/session/register", json=SIGNUP)
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["access_token"]
    assert body["user"]["role"] == "donor"
    assert body["user"]["name"] == "donor"
    assert body["user"]["profile_complete"] is False
    auth = _bearer(r)

    r = client.patch("/session/profile", json={"phone": "+91 98450 00000"}, headers=auth)
    assert r.status_code == 200, r.text
    user = r.json()["user"]
    assert user["profile_complete"] is True
    assert user["phone"] == "+91 98450 00000"

    r = client.post("/session/logout", headers=auth)
    assert r.json() == {"ok": True}
    # the signed-out token no longer authorizes anything
    assert client.get("/session", headers=auth).status_code == 401

    r = client.post("/session/login", json={"email": SIGNUP["email"], "password": SIGNUP["password"]})
    assert r.status_code == 200
    user = r.json()["user"]
    assert user["phone"] == "+91 98450 00000"
    assert user["profile_complete"] is True
    assert client.get("/session", headers=_bearer(r)).json()["user"]["email"] == SIGNUP["email"]


def test_anonymous_caller_cannot_read_or_edit_signed_in_profile(client):
    r = client.post("/session/register", json=SIGNUP)
    auth = _bearer(r)

    stranger = TestClient(client.app)
    assert stranger.get("/session").status_code == 401
    assert stranger.patch("/session/profile", json={"name": "pwned"}).status_code == 401
    assert stranger.post("/session/logout").status_code == 401
    r = stranger.patch(
        "/session/profile",
        json={"name": "pwned"},
        headers={"Authorization": "Bearer not-the-token"},
    )
    assert r.status_code == 401

    user = client.get("/session", headers=auth).json()["user"]
    assert user["name"] == "donor"
    assert user["profile_complete"] is False


def test_new_login_revokes_previous_token(client):
    first = client.post("/session/register", json=SIGNUP)
    second = client.post("/session/login", json={"email": SIGNUP["email"], "password": SIGNUP["password"]})
    assert client.get("/session", headers=_bearer(first)).status_code == 401
    assert client.get("/session", headers=_bearer(second)).status_code == 200


def test_register_admin_is_rejected(client):
    r = client.post("/session/register", json={**SIGNUP, "role": "admin"})
    assert r.status_code == 422


def test_duplicate_registration(client):
    r = client.post("/session/register", json=SIGNUP)
    assert r.status_code == 201
    auth = _bearer(r)
    r = client.post("/session/register", json=SIGNUP)
    assert r.status_code == 401
    assert client.get("/session", headers=auth).json()["error"] == "User already registered"


def test_bad_credentials(client):
    r = client.post("/session/login", json={"email": "nobody@example.com", "password": "x"})
    assert r.status_code == 401
    assert r.json()["detail"] == "Invalid login credentials"


def test_profile_update_requires_user(client):
    r = client.patch("/session/profile", json={"name": "X"})
    assert r.status_code == 401


def test_profile_update_validates_category(client):
    auth = _bearer(client.post("/session/register", json={**SIGNUP, "role": "receiver"}))
    r = client.patch("/session/profile", json={"category": "casino"}, headers=auth)
    assert r.status_code == 422


def test_receiver_organization_profile(client):
    auth = _bearer(client.post("/session/register", json={**SIGNUP, "role": "receiver"}))
    body = {
        "name": "Hope Shelter Trust",
        "organization_name": "Hope Shelter",
        "category": "shelter",
        "location": {"address": "12 MG Road, Bengaluru", "coordinates": {"lat": 12.97, "lng": 77.59}},
    }
    r = client.patch("/session/profile", json=body, headers=auth)
    assert r.status_code == 200, r.text
    user = r.json()["user"]
    assert user["category"] == "shelter"
    assert user["location"]["coordinates"] == {"lat": 12.97, "lng": 77.59}
    assert user["name"] == "Hope Shelter Trust"


def test_google_login_start(client):
    r = client.post("/session/google")
    assert r.status_code == 200
    assert "provider=google" in r.json()["url"]
    assert client.app.state.session.loading is True

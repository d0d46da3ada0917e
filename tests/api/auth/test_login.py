from main import app

TEST_PASSWORD = "TestPassword123!"


async def test_login_success(client, registered_user):
    """Test successful login returns user and tokens."""
    response = await client.post("/auth/login", json={
        "email": registered_user.email,
        "password": TEST_PASSWORD
    })

    assert response.status_code == 200
    data = response.json()
    assert data["message"] == "User logged in successfully"
    assert data["user"]["id"] == registered_user.id

    codec = app.state.token_codec
    access = codec.verify_access_token(data["tokens"]["access_token"])
    refresh = codec.verify_refresh_token(data["tokens"]["refresh_token"])
    assert access.user_id == registered_user.id
    assert refresh.user_id == registered_user.id
    assert access.device == "pytest-agent"


async def test_login_email_case_insensitive(client, registered_user):
    response = await client.post("/auth/login", json={
        "email": registered_user.email.upper(),
        "password": TEST_PASSWORD
    })

    assert response.status_code == 200


async def test_login_wrong_password_and_unknown_email_look_the_same(client, registered_user):
    wrong_password = await client.post("/auth/login", json={
        "email": registered_user.email,
        "password": "wrong"
    })
    unknown_email = await client.post("/auth/login", json={
        "email": "nonexistent@example.com",
        "password": TEST_PASSWORD
    })

    assert wrong_password.status_code == 401
    assert unknown_email.status_code == 401
    assert wrong_password.json() == unknown_email.json()
    assert wrong_password.json()["detail"] == "Invalid email or password"


async def test_login_missing_password(client):
    response = await client.post("/auth/login", json={"email": "someone@example.com"})

    assert response.status_code == 422

from utils.logger import sanitize_log_data


def test_password_redaction():
    data = {"email": "user@example.com", "password": "supersecret123"}
    sanitized = sanitize_log_data(data)

    assert sanitized["email"] == "user@example.com"
    assert sanitized["password"] == "***REDACTED***"


def test_token_partial_redaction():
    data = {"refresh_token": "eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9.long_token_here"}
    sanitized = sanitize_log_data(data)

    assert sanitized["refresh_token"] == data["refresh_token"][:8] + "..."
    assert "long_token_here" not in sanitized["refresh_token"]


def test_hash_redaction():
    sanitized = sanitize_log_data({"token_hash": "abc", "password_hash": "$2b$12$xyz"})

    assert sanitized["token_hash"] == "***REDACTED***"
    assert sanitized["password_hash"] == "***REDACTED***"


def test_nested_dict_sanitization():
    data = {"payload": {"username": "alice", "password": "secret123"}}
    sanitized = sanitize_log_data(data)

    assert sanitized["payload"]["username"] == "alice"
    assert sanitized["payload"]["password"] == "***REDACTED***"
    # Input is left untouched
    assert data["payload"]["password"] == "secret123"


def test_non_sensitive_data_unchanged():
    data = {"userId": 123, "username": "alice", "topic": "user-login-topic"}

    assert sanitize_log_data(data) == data

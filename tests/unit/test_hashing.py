from utils.hashing import verify_password, get_password_hash


def test_password_hashing():
    password = "supersecretpassword"
    hashed = get_password_hash(password)
    assert hashed != password
    assert hashed.startswith("$2b$12$")

    # Salted: same input, different hash
    assert get_password_hash(password) != hashed


def test_password_verification():
    password = "supersecretpassword"
    hashed = get_password_hash(password)

    assert verify_password(password, hashed) is True
    assert verify_password("wrongpassword", hashed) is False

    long_pass = "a" * 100
    hashed_long = get_password_hash(long_pass)
    assert verify_password(long_pass, hashed_long) is True


def test_verify_against_malformed_hash_returns_false():
    assert verify_password("secret1", "not-a-bcrypt-hash") is False
    assert verify_password("secret1", "") is False


def test_multibyte_password_truncated_at_72_bytes():
    # "é" is two bytes in UTF-8: 36 of them fill the bcrypt input exactly
    password = "é" * 40
    hashed = get_password_hash(password)

    assert verify_password(password, hashed) is True
    assert verify_password("é" * 36 + "different tail", hashed) is True
    assert verify_password("é" * 35, hashed) is False

from passlib.context import CryptContext

# Fixed work factor so hashes stay comparable across deployments
BCRYPT_ROUNDS = 12
BCRYPT_MAX_BYTES = 72

bcrypt_context = CryptContext(schemes=['bcrypt'], deprecated='auto', bcrypt__rounds=BCRYPT_ROUNDS)


def _bcrypt_secret(password: str) -> bytes:
    # Bcrypt only reads the first 72 bytes; cut the encoded form, not characters
    return password.encode("utf-8", "surrogatepass")[:BCRYPT_MAX_BYTES]


def get_password_hash(password: str) -> str:
    return bcrypt_context.hash(_bcrypt_secret(password))


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return bcrypt_context.verify(_bcrypt_secret(plain_password), hashed_password)
    except (ValueError, TypeError):
        # Unknown or malformed hash: treat as a mismatch
        return False

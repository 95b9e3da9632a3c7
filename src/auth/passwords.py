import bcrypt as bcrypt_lib


def hash_password(password: str) -> str:
    """Hash password using bcrypt."""
    return bcrypt_lib.hashpw(password.encode(), bcrypt_lib.gensalt()).decode()


def verify_password(password: str, password_hash: str | None) -> bool:
    """Verify password against hash. Malformed or missing hashes never match."""
    if not password_hash:
        return False
    try:
        return bcrypt_lib.checkpw(password.encode(), password_hash.encode())
    except ValueError:
        return False

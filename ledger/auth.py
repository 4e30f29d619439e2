from typing import Optional

from passlib.context import CryptContext

from ledger.config import LedgerSettings, get_settings


pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def validate_credentials(login: Optional[str], password: Optional[str],
                         settings: Optional[LedgerSettings] = None) -> bool:
    """Minimum-length policy applied before an owner is registered."""
    settings = settings or get_settings()
    if not login or not login.strip():
        return False
    if not password or not password.strip():
        return False
    if len(login) < settings.min_login_length:
        return False
    if len(password) < settings.min_password_length:
        return False
    return True


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)

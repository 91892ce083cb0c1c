"""
Password hashing utilities for portal accounts.
"""

from passlib.context import CryptContext

from leave_portal.config import settings

# Password hashing context
pwd_context = CryptContext(schemes=settings.PASSWORD_SCHEMES, deprecated="auto")


def get_password_hash(password: str) -> str:
    """Hash a password."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    if not plain_password or not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        # 無法辨識的雜湊格式（例如舊資料的明文密碼）
        return False

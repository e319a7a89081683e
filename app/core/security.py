import re
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
import bcrypt
from jose import JWTError, jwt
from app.core import errors

PASSWORD_SYMBOLS = "!@#$%^&*"
PASSWORD_PATTERN = re.compile(r"^(?=.*[0-9])(?=.*[!@#$%^&*])[A-Za-z0-9!@#$%^&*]{6,}$")
PASSWORD_POLICY_MESSAGE = "Password must be at least 6 characters, include a number and a special character!"


def is_valid_password(password: Optional[str]) -> bool:
    """
    At least six characters, one digit and one of !@#$%^&*, and nothing
    outside letters, digits and those symbols.
    """
    if not password:
        return False
    return PASSWORD_PATTERN.fullmatch(password) is not None


def validate_password(password: Optional[str]):
    if not is_valid_password(password):
        raise errors.ValidationError(PASSWORD_POLICY_MESSAGE)


def hash_password(password: str, rounds: int = 12) -> str:
    # Bcrypt has a 72 byte limit
    password_bytes = password.encode("utf-8")[:72]
    return bcrypt.hashpw(password_bytes, bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    password_bytes = plain_password.encode("utf-8")[:72]
    try:
        return bcrypt.checkpw(password_bytes, hashed_password.encode("utf-8"))
    except ValueError:
        return False


def create_access_token(data: Dict[str, Any], secret: str, algorithm: str, expires_minutes: int) -> str:
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    to_encode.update({"iat": now, "exp": now + timedelta(minutes=expires_minutes)})
    return jwt.encode(to_encode, secret, algorithm=algorithm)


def decode_access_token(token: str, secret: str, algorithm: str) -> Dict[str, Any]:
    try:
        return jwt.decode(token, secret, algorithms=[algorithm])
    except JWTError:
        raise errors.AuthRequired("Invalid or expired session")

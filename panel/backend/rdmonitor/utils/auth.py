"""Panel lock: bcrypt-hashed 4-digit PIN and the JWT session issued on unlock."""
import re
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt
from rdmonitor.config import settings

PIN_PATTERN = re.compile(r"\d{4}", re.ASCII)
SESSION_SUBJECT = "panel"


def is_valid_pin(pin: str) -> bool:
    return bool(pin) and PIN_PATTERN.fullmatch(pin) is not None


def hash_pin(pin: str) -> str:
    if not is_valid_pin(pin):
        raise ValueError("PIN must be 4 digits")
    return bcrypt.hashpw(pin.encode("ascii"), bcrypt.gensalt()).decode("ascii")


def verify_pin(pin: str, pin_hash: str) -> bool:
    if not is_valid_pin(pin):
        return False
    return bcrypt.checkpw(pin.encode("ascii"), pin_hash.encode("ascii"))


def create_session_token() -> str:
    issued = datetime.now(timezone.utc)
    return jwt.encode(
        {"sub": SESSION_SUBJECT, "iat": issued, "exp": issued + timedelta(minutes=settings.jwt_expire_minutes)},
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )


def is_valid_session(token: str) -> bool:
    """True for an unexpired token signed with our key for the panel session."""
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except jwt.PyJWTError:
        return False
    return payload.get("sub") == SESSION_SUBJECT

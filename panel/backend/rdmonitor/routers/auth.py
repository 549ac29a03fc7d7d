from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from rdmonitor.database import get_db
from rdmonitor.schemas.settings import Token, UnlockRequest
from rdmonitor.services.settings_store import get_pin_hash
from rdmonitor.utils.auth import create_session_token, is_valid_session, verify_pin

router = APIRouter(prefix="/api", tags=["auth"])
security = HTTPBearer(auto_error=False)


def require_unlocked(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: Session = Depends(get_db),
) -> None:
    """Without a PIN the panel is open; with one, a token from /api/unlock is required."""
    if get_pin_hash(db) is None:
        return
    if not credentials or credentials.credentials is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Locked")
    if not is_valid_session(credentials.credentials):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")


@router.post("/unlock", response_model=Token)
def unlock(body: UnlockRequest, db: Session = Depends(get_db)):
    pin_hash = get_pin_hash(db)
    if pin_hash is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No PIN configured")
    if not verify_pin(body.pin, pin_hash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Wrong PIN")
    return Token(access_token=create_session_token())

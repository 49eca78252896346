# civicbot/core/security.py
from fastapi import HTTPException, status, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional
import hmac, time, jwt
from civicbot.core.config import settings

ALGO = "HS256"
ACCESS_TTL = 12 * 3600
ADMIN_SUBJECT = "admin"
bearer = HTTPBearer(auto_error=False)

def check_secret(candidate: str, expected: str) -> bool:
    if not candidate or not expected:
        return False
    return hmac.compare_digest(candidate.encode("utf-8"), expected.encode("utf-8"))

def is_valid_api_token(token: str) -> bool:
    """API_TOKEN and ADMIN_SECRET are both accepted by the admin API."""
    return check_secret(token, settings.admin_api_token) or check_secret(token, settings.admin_secret)

def make_admin_token(ttl: int = ACCESS_TTL) -> dict:
    now = int(time.time())
    payload = {"sub": ADMIN_SUBJECT, "role": "admin", "iat": now, "exp": now + ttl}
    return {
        "access_token": jwt.encode(payload, settings.signing_key, algorithm=ALGO),
        "token_type": "bearer",
        "expires_in": ttl,
    }

def _decode_token(creds: Optional[HTTPAuthorizationCredentials]) -> dict:
    if not creds:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    try:
        return jwt.decode(creds.credentials, settings.signing_key, algorithms=[ALGO])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token expired")
    except Exception:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

def require_admin(creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer)) -> dict:
    payload = _decode_token(creds)
    if payload.get("role") != "admin":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="forbidden")
    return payload

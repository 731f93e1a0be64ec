"""
Bearer tokens for API callers.
Identity comes from the external auth provider; the bridge issues a signed
{"sub": account_id} with itsdangerous, verified here on every request.
"""
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from app.core.config import settings

_SALT = "api-access-token"


def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(settings.auth_token_secret, salt=_SALT)


def issue_access_token(account_id: str) -> str:
    return _serializer().dumps({"sub": account_id})


def verify_access_token(token: str, max_age: int | None = None) -> str | None:
    """Account id from a valid token, None if tampered, expired or malformed."""
    try:
        payload = _serializer().loads(token, max_age=max_age or settings.auth_token_max_age)
    except (BadSignature, SignatureExpired):
        return None
    if not isinstance(payload, dict):
        return None
    sub = payload.get("sub")
    return sub if isinstance(sub, str) and sub else None

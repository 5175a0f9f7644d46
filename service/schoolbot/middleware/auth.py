import time

import httpx
from fastapi import HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import jwt, JWTError

from schoolbot.config import get_settings

security = HTTPBearer()

# Cache JWKS for 10 minutes
_jwks_cache = {"keys": None, "fetched_at": 0.0}
JWKS_CACHE_SECONDS = 600


async def _get_jwks() -> list:
    """Fetch the project's signing keys, with caching."""
    now = time.time()
    if _jwks_cache["keys"] and (now - _jwks_cache["fetched_at"]) < JWKS_CACHE_SECONDS:
        return _jwks_cache["keys"]

    settings = get_settings()
    jwks_url = f"{settings.supabase_url.rstrip('/')}/auth/v1/.well-known/jwks.json"

    try:
        async with httpx.AsyncClient() as client:
            response = await client.get(jwks_url, timeout=10.0)
            response.raise_for_status()
            _jwks_cache["keys"] = response.json().get("keys", [])
            _jwks_cache["fetched_at"] = now
            print(f"[AUTH] Fetched JWKS with {len(_jwks_cache['keys'])} keys")
    except httpx.HTTPError as e:
        print(f"[AUTH] Failed to fetch JWKS: {e}")

    # Stale keys are better than none
    return _jwks_cache["keys"] or []


async def verify_token(
    credentials: HTTPAuthorizationCredentials = Security(security)
) -> dict:
    """
    Validate the bearer JWT of a dashboard user.

    HS256 tokens are checked with the project JWT secret, ES256 tokens
    against the published JWKS.
    """
    settings = get_settings()
    token = credentials.credentials

    try:
        header = jwt.get_unverified_header(token)
        alg = header.get("alg")

        if alg == "HS256":
            key = settings.supabase_jwt_secret
        elif alg == "ES256":
            keys = await _get_jwks()
            kid = header.get("kid")
            key = next((k for k in keys if k.get("kid") == kid), None) if kid else (keys[0] if keys else None)
            if key is None:
                raise JWTError(f"No matching key found for kid={kid}")
        else:
            raise JWTError(f"Unsupported algorithm: {alg}")

        return jwt.decode(token, key, algorithms=[alg], options={"verify_aud": False})
    except JWTError as e:
        print(f"[AUTH] JWT verification failed: {e}")
        raise HTTPException(
            status_code=401,
            detail="Invalid or expired authentication token"
        )


def get_user_id(token_payload: dict) -> str:
    """Extract user_id from verified token payload."""
    return token_payload.get("sub")

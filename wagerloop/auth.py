"""
Simple API Key authentication
Each key maps to the user id the social feed acts on behalf of
"""

from fastapi import Security, HTTPException, status
from fastapi.security import APIKeyHeader
from functools import lru_cache
import os
from typing import Dict
from dotenv import load_dotenv

# Load .env file
load_dotenv()

# API Key header
API_KEY_HEADER = APIKeyHeader(name="X-API-Key", auto_error=False)

MAX_USERS = 5


@lru_cache(maxsize=1)
def get_valid_api_keys() -> Dict[str, str]:
    """
    Load valid API keys from environment variables

    API_KEY_USER{n} is either "key:user_id" or a bare key, in which case
    the user id is "user{n}".  Loaded on first request, not at import.
    """
    keys = {}

    for i in range(1, MAX_USERS + 1):
        value = os.getenv(f"API_KEY_USER{i}")
        if not value:
            continue
        key, sep, user_id = value.partition(":")
        keys[key] = user_id if sep and user_id else f"user{i}"

    if not keys:
        # Development fallback (never use in production)
        if os.getenv("ENVIRONMENT") == "development":
            keys["dev-key-insecure"] = "dev_user"
        else:
            raise ValueError("No API keys configured! Set API_KEY_USER1 in environment")

    return keys


def reset_api_keys() -> None:
    """Forget loaded keys so the next request re-reads the environment."""
    get_valid_api_keys.cache_clear()


async def verify_api_key(api_key: str = Security(API_KEY_HEADER)) -> str:
    """
    Verify API key and return the user id

    Usage in FastAPI routes:
        @app.get("/protected")
        async def protected_route(user: str = Depends(verify_api_key)):
            return {"user": user}
    """
    if not api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="API key required. Include 'X-API-Key' header.",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    valid_keys = get_valid_api_keys()
    if api_key not in valid_keys:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    return valid_keys[api_key]

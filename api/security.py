import logging
import secrets
from typing import Optional

from fastapi import HTTPException, Request, Security, status
from fastapi.security import APIKeyHeader

from promo_engine.config.settings import settings

logger = logging.getLogger("PromoEngine")

api_key_header = APIKeyHeader(name="x-api-key", auto_error=False)


def verify_api_key(request: Request, api_key: Optional[str] = Security(api_key_header)) -> str:
    """
    Guards the endpoints that start model calls (generation, jobs, vision review).
    Polling, progress streams and the validators stay public.
    """
    if not api_key:
        logger.warning(f"🔒 Rejected {request.method} {request.url.path}: missing API key")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing API Key")

    if not secrets.compare_digest(api_key.encode("utf-8"), settings.api_key.encode("utf-8")):
        logger.warning(f"🔒 Rejected {request.method} {request.url.path}: invalid API key")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid API Key")
    return api_key

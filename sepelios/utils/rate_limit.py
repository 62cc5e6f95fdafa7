"""
Limitation de débit optionnelle (checkout, création de cotisations).

- Redis via fastapi-limiter quand le lifespan l'a initialisé.
- LOCAL_RATE_LIMIT_FALLBACK=1: fenêtre glissante en mémoire (dev/tests).
- rate_limit_enabled=False (lifespan en échec): aucune limitation, jamais de 429 en prod.
"""
from typing import Dict, Any, List
from fastapi import Request, Response, HTTPException
import os
import time
import hashlib
from fastapi_limiter import FastAPILimiter
from fastapi_limiter.depends import RateLimiter

from sepelios.utils.security import extract_token


def rate_limit_key(request: Request) -> str:
    # Priorité: utilisateur (token hashé) puis IP; la clé inclut le chemin
    token = extract_token(request)
    path = request.url.path
    if token:
        digest = hashlib.sha256(token.encode("utf-8")).hexdigest()[:16]
        return f"user:{digest}:{path}"
    ip = request.client.host if request.client else "local"
    return f"ip:{ip}:{path}"


def _local_hit(request: Request, times: int, seconds: int) -> None:
    now = time.time()
    key = rate_limit_key(request)
    store: Dict[str, List[float]] = getattr(request.app.state, "_rl_store", {})
    hits = [t for t in store.get(key, []) if now - t < seconds]
    if len(hits) >= times:
        raise HTTPException(status_code=429, detail="Too Many Requests")
    hits.append(now)
    store[key] = hits
    request.app.state._rl_store = store


def optional_rate_limit(times: int, seconds: int):
    async def _dep(request: Request, response: Response):
        if os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1":
            _local_hit(request, times, seconds)
            return

        if getattr(request.app.state, "rate_limit_enabled", None) is not True:
            return

        if getattr(FastAPILimiter, "redis", None) is None:
            return

        async def _identifier(req: Request) -> str:
            return rate_limit_key(req)

        # HTTPException(429) levée par fastapi-limiter remonte telle quelle
        await RateLimiter(times=times, seconds=seconds, identifier=_identifier)(request, response)
    return _dep


def rate_limit_health_info(request: Request) -> Dict[str, Any]:
    enabled = getattr(request.app.state, "rate_limit_enabled", None)
    ready = getattr(FastAPILimiter, "redis", None) is not None
    return {
        "enabled": (bool(enabled) if enabled is not None else None),
        "ready": ready,
        "backend": "redis" if ready else ("memory" if os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1" else None),
    }

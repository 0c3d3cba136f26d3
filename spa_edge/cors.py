import logging
from typing import List, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from spa_edge.vars import CORS_ALLOWED_ORIGINS, CORS_MODE, UPSTREAM, UpstreamConfig

logger = logging.getLogger("uvicorn.error")


def allowed_origins(
    configured: Optional[List[str]] = None, upstream: Optional[UpstreamConfig] = None
) -> List[str]:
    """Configured origins plus the upstream's own origin, without duplicates."""
    configured = CORS_ALLOWED_ORIGINS if configured is None else configured
    upstream = UPSTREAM if upstream is None else upstream

    origins = []
    for origin in [*configured, upstream.origin]:
        origin = origin.rstrip("/")
        if origin and origin not in origins:
            origins.append(origin)
    return origins


def add_cors(app: FastAPI, mode: Optional[str] = None, origins: Optional[List[str]] = None) -> None:
    """
    Install the dedicated CORS layer when CORS_MODE is "middleware".

    In "proxy" mode the forwarder reflects the Origin on /api responses
    instead, and "off" leaves CORS alone.
    """
    mode = CORS_MODE if mode is None else mode
    if mode != "middleware":
        logger.info(f"CORS mode: {mode}")
        return

    origins = allowed_origins() if origins is None else origins
    logger.info(f"CORS mode: middleware, allowed origins: {', '.join(origins)}")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

"""Static bundle serving.

The build directory is mounted at ``/`` after every other route, so it only
sees requests nothing else claimed. The service worker has its own route
ahead of everything else and is always sent with caching disabled.
"""

import logging
import os
from typing import Optional

from fastapi import APIRouter, FastAPI, HTTPException
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles

from spa_edge.vars import BUILD_DIR, SERVICE_WORKER_CACHE_CONTROL, SERVICE_WORKER_PATH

logger = logging.getLogger("uvicorn.error")

router = APIRouter()


def service_worker_file(build_dir: str) -> str:
    return os.path.join(build_dir, SERVICE_WORKER_PATH.lstrip("/"))


@router.api_route(SERVICE_WORKER_PATH, methods=["GET", "HEAD"], include_in_schema=False)
async def service_worker():
    """Serve the service worker script with caching disabled."""
    path = service_worker_file(BUILD_DIR)
    if not os.path.isfile(path):
        raise HTTPException(status_code=404, detail="Not Found")
    return FileResponse(
        path,
        media_type="application/javascript",
        headers={"Cache-Control": SERVICE_WORKER_CACHE_CONTROL},
    )


def mount_static(app: FastAPI, directory: Optional[str] = None) -> None:
    """
    Mount the build directory at the root of the app.

    Directory requests resolve to their index.html. Misses are plain 404s;
    there is no single-page-application fallback.
    """
    directory = directory or BUILD_DIR
    if not os.path.isdir(directory):
        logger.warning(f"Build directory {directory} does not exist yet; static requests fail until it is built")
    app.mount(
        "/",
        StaticFiles(directory=directory, html=True, check_dir=False),
        name="static",
    )

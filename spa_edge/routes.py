import logging

from fastapi import APIRouter

from spa_edge.app_proxy.route import router as proxy_router
from spa_edge.bootstrap.flags import router as flags_router
from spa_edge.static.route import router as service_worker_router
from spa_edge.vars import API_PREFIX, SERVICE_NAME, UPSTREAM

router = APIRouter()

logger = logging.getLogger("uvicorn.error")

# Order matters: the service worker wins over both the API and the static mount
router.include_router(service_worker_router)
router.include_router(proxy_router)
router.include_router(flags_router)

if UPSTREAM.base_url:
    logger.info(
        f"Forwarding {API_PREFIX} to {UPSTREAM.base_url}"
        f" (includes prefix: {UPSTREAM.includes_prefix})"
    )
else:
    logger.warning(f"No API_URL or API_HOST set, {API_PREFIX} requests will return 503")


@router.get("/health", include_in_schema=False)
async def health():
    return {"status": "ok", "service": SERVICE_NAME}

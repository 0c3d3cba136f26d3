"""Initial flags handed to the single-page application when it mounts.

The client bootstrap fetches ``/bootstrap/flags.json`` and passes the result
to the application's init call, adding the window size itself.
"""

import time
from typing import List, Optional

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from spa_edge.vars import FUTUCORTEX_IFRAME_URL, FUTUCORTEX_IFRAME_VIEWERS

router = APIRouter(prefix="/bootstrap")


def client_flags(
    iframe_url: Optional[str] = None,
    iframe_viewers: Optional[List[str]] = None,
    now_ms: Optional[int] = None,
) -> dict:
    return {
        "now": int(time.time() * 1000) if now_ms is None else now_ms,
        "iframeUrl": FUTUCORTEX_IFRAME_URL if iframe_url is None else iframe_url,
        "iframeViewers": list(
            FUTUCORTEX_IFRAME_VIEWERS if iframe_viewers is None else iframe_viewers
        ),
    }


@router.get("/flags.json", include_in_schema=False)
async def get_client_flags():
    return JSONResponse(client_flags(), headers={"Cache-Control": "no-store"})

import logging
import re
from typing import AsyncIterator, Dict, List, Mapping, Optional, Tuple

import httpx
from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import StreamingResponse
from opentelemetry import trace

from spa_edge.utils.exception_logging import error_code, log_exception_with_details
from spa_edge.utils.traced_requests import traced_request
from spa_edge.vars import API_PATH_REWRITE, API_PREFIX, CORS_MODE, UPSTREAM, UpstreamConfig

router = APIRouter(prefix=API_PREFIX)
tracer = trace.get_tracer(__name__)
logger = logging.getLogger("uvicorn.error")

PROXY_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"]

# First literal "v1" in the path becomes "api/v1"
V1_PATTERN = re.compile(r"v1")
V1_REPLACEMENT = "api/v1"

# Hop-by-hop headers that should NOT be forwarded (RFC 7230 6.1)
HOP_BY_HOP_HEADERS = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailers",
    "transfer-encoding",
    "upgrade",
}

# The relayed body is the decoded upstream body
BODY_FRAMING_HEADERS = {"content-encoding", "content-length"}

PROXY_CORS_HEADERS = {"access-control-allow-origin", "access-control-allow-credentials"}


def strip_api_prefix(path: str) -> str:
    """Return the part of the path after the API prefix, always starting with /."""
    if path.startswith(API_PREFIX):
        path = path[len(API_PREFIX):]
    if not path.startswith("/"):
        path = "/" + path
    return path


def resolve_path(incoming_path: str, incoming_query: Optional[str] = None) -> str:
    """
    Compute the outgoing path for an API request.

    The query may be passed separately or still attached to the path; in the
    latter case it is split off at the first ``?``. Only the path portion is
    rewritten and a non-empty query is re-attached byte for byte; an empty
    query is dropped, since ASGI cannot tell ``/x?`` from ``/x``.
    """
    path, _, embedded_query = incoming_path.partition("?")
    query = incoming_query or embedded_query

    if API_PATH_REWRITE:
        path = V1_PATTERN.sub(V1_REPLACEMENT, path, count=1)

    if query:
        return f"{path}?{query}"
    return path


def build_target_url(upstream: UpstreamConfig, outgoing_path: str) -> str:
    """Join the upstream base URL, the API prefix when needed, and the outgoing path."""
    base = upstream.base_url.rstrip("/")
    if not upstream.includes_prefix:
        base = f"{base}{API_PREFIX}"
    return f"{base}{outgoing_path}"


def decorate_outbound_headers(
    headers: Mapping[str, str], client_protocol: str, client_ip: str
) -> Dict[str, str]:
    """
    Prepare headers for forwarding to the upstream.

    Every end-to-end header passes through unchanged. X-Forwarded-Proto and
    X-Real-IP are set from the original connection, replacing any value the
    client sent.
    """
    decorated = {}
    for name, value in headers.items():
        name_lower = name.lower()
        if name_lower in HOP_BY_HOP_HEADERS:
            continue
        if name_lower in ("x-forwarded-proto", "x-real-ip"):
            continue
        decorated[name] = value

    decorated["X-Forwarded-Proto"] = client_protocol
    decorated["X-Real-IP"] = client_ip
    return decorated


def decorate_inbound_headers(
    upstream_headers, request_origin: Optional[str]
) -> List[Tuple[str, str]]:
    """
    Prepare upstream response headers for the client.

    Returns name/value pairs so repeated headers such as Set-Cookie survive.
    Upstream allow-origin/allow-credentials headers are dropped unless CORS
    is off, so only the edge's own CORS layer decides. When CORS is handled
    on the proxy path, the request's Origin is reflected back together with
    allow-credentials.
    """
    if hasattr(upstream_headers, "multi_items"):
        items = upstream_headers.multi_items()
    else:
        items = list(upstream_headers.items())

    relayed = []
    for name, value in items:
        name_lower = name.lower()
        if name_lower in HOP_BY_HOP_HEADERS or name_lower in BODY_FRAMING_HEADERS:
            continue
        if CORS_MODE != "off" and name_lower in PROXY_CORS_HEADERS:
            continue
        relayed.append((name, value))

    if CORS_MODE == "proxy" and request_origin:
        relayed.append(("access-control-allow-origin", request_origin))
        relayed.append(("access-control-allow-credentials", "true"))
    return relayed


async def stream_response(response: httpx.Response) -> AsyncIterator[bytes]:
    async for chunk in response.aiter_bytes():
        yield chunk


def _client_timeout(upstream: UpstreamConfig) -> dict:
    if upstream.timeout is None:
        return {}
    return {"timeout": httpx.Timeout(upstream.timeout)}


async def forward_to_upstream(request: Request) -> StreamingResponse:
    """
    Forward an /api request to the configured upstream and relay its response.

    One attempt per request. Transport failures are logged and mapped to
    504 (timeout) or 502 (anything else); they never propagate further.
    """
    upstream = UPSTREAM
    if not upstream.base_url:
        raise HTTPException(
            status_code=503,
            detail="API_URL or API_HOST is not configured. Proxy is unavailable.",
        )

    outgoing_path = resolve_path(strip_api_prefix(request.url.path), request.url.query)
    target_url = build_target_url(upstream, outgoing_path)
    client_ip = request.client.host if request.client else "unknown"

    with traced_request(
        tracer,
        "proxy_request",
        f"Proxying {request.method} {request.url.path} -> {target_url}",
        extra_attrs={"proxy.target_url": target_url, "proxy.method": request.method},
    ) as span:
        headers = decorate_outbound_headers(
            request.headers, request.url.scheme, client_ip
        )
        body = await request.body()

        try:
            async with httpx.AsyncClient(
                follow_redirects=False, **_client_timeout(upstream)
            ) as client:
                response = await client.request(
                    method=request.method,
                    url=target_url,
                    headers=headers,
                    content=body,
                )
        except httpx.TimeoutException as e:
            log_exception_with_details(logger, f"[Proxy] Timeout for {target_url}", e)
            span.set_attribute("proxy.error", error_code(e))
            raise HTTPException(status_code=504, detail="Gateway timeout")
        except httpx.ConnectError as e:
            log_exception_with_details(
                logger, f"[Proxy] Failed to connect to upstream {target_url}", e
            )
            span.set_attribute("proxy.error", error_code(e))
            raise HTTPException(
                status_code=502, detail="Bad gateway - cannot connect to upstream"
            )
        except Exception as e:
            log_exception_with_details(logger, f"[Proxy] Error for {target_url}", e)
            span.set_attribute("proxy.error", error_code(e))
            raise HTTPException(status_code=502, detail="Bad gateway")

        span.set_attribute("proxy.status_code", response.status_code)

        relayed = StreamingResponse(
            stream_response(response), status_code=response.status_code
        )
        relayed.raw_headers.extend(
            (name.lower().encode("latin-1"), value.encode("latin-1"))
            for name, value in decorate_inbound_headers(
                response.headers, request.headers.get("origin")
            )
        )
        return relayed


@router.api_route("", methods=PROXY_METHODS, include_in_schema=False)
@router.api_route("/{path:path}", methods=PROXY_METHODS, include_in_schema=False)
async def proxy_api(request: Request, path: str = ""):
    """Catch-all route that forwards everything under the API prefix."""
    return await forward_to_upstream(request)

import os
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse


def parse_list(raw: str) -> list:
    """Split a comma-separated value, dropping blank entries."""
    return [item.strip() for item in (raw or "").split(",") if item.strip()]


SERVICE_NAME = os.getenv("SERVICE_NAME", "spa-edge")
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "info").lower()

OTLP_ENDPOINT = os.getenv("OTLP_ENDPOINT")
OTLP_HEADERS = os.getenv("OTLP_HEADERS", "")

API_PREFIX = "/api"
API_PATH_REWRITE = os.getenv("API_PATH_REWRITE", "true").lower() == "true"

BUILD_DIR = os.getenv("BUILD_DIR", os.path.join(os.getcwd(), "build"))
SERVICE_WORKER_PATH = "/service-worker.js"
SERVICE_WORKER_CACHE_CONTROL = "no-store, no-cache, must-revalidate, private"

CORS_MODES = ("middleware", "proxy", "off")
CORS_MODE = os.getenv("CORS_MODE", "middleware").lower()
if CORS_MODE not in CORS_MODES:
    raise ValueError(f"CORS_MODE must be one of {', '.join(CORS_MODES)}, got {CORS_MODE!r}")
CORS_ALLOWED_ORIGINS = parse_list(os.getenv("CORS_ALLOWED_ORIGINS", "http://localhost:3000"))

FUTUCORTEX_IFRAME_URL = os.getenv("ELM_APP_FUTUCORTEX_IFRAME_URL", "")
FUTUCORTEX_IFRAME_VIEWERS = parse_list(os.getenv("ELM_APP_FUTUCORTEX_IFRAME_VIEWERS", ""))


@dataclass(frozen=True)
class UpstreamConfig:
    """Where /api requests go.

    ``includes_prefix`` tells whether ``base_url`` already carries the API
    path. When it does not, the API prefix is appended when building the
    target URL.
    """

    base_url: str
    includes_prefix: bool
    timeout: Optional[float] = None

    @property
    def origin(self) -> str:
        parsed = urlparse(self.base_url)
        if not parsed.scheme or not parsed.netloc:
            return ""
        return f"{parsed.scheme}://{parsed.netloc}"


def _parse_timeout(raw: str) -> Optional[float]:
    raw = raw.strip()
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"PROXY_TIMEOUT must be a number of seconds, got {raw!r}")


def resolve_upstream(env=None) -> UpstreamConfig:
    """Build the upstream config from API_URL or API_HOST.

    API_URL wins when both are set. API_URL_INCLUDES_PREFIX overrides the
    prefix flag implied by whichever variable was used.
    """
    env = os.environ if env is None else env
    api_url = env.get("API_URL", "").strip()
    api_host = env.get("API_HOST", "").strip()

    if api_url:
        base_url, includes_prefix = api_url, True
    else:
        base_url, includes_prefix = api_host, False

    override = env.get("API_URL_INCLUDES_PREFIX", "").strip().lower()
    if override:
        includes_prefix = override == "true"

    return UpstreamConfig(
        base_url=base_url.rstrip("/"),
        includes_prefix=includes_prefix,
        timeout=_parse_timeout(env.get("PROXY_TIMEOUT", "")),
    )


UPSTREAM = resolve_upstream()

"""
Single-request URL reachability check.

One outbound request, bounded timeout, capped redirects, no retries.
"""

import logging
import re
from typing import Optional

import httpx

from config import ServiceConfig
from models import CheckResult

logger = logging.getLogger(__name__)

_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)

ACCESSIBLE = "URL is accessible"
NOT_ACCESSIBLE = "URL is not accessible"


def normalize_url(raw: str) -> str:
    """Prepend https:// when the string has no http(s) scheme."""
    if raw is None or not raw.strip():
        raise ValueError("URL is required")
    candidate = raw.strip()
    if _SCHEME_RE.match(candidate):
        return candidate
    return f"https://{candidate}"


def status_is_acceptable(status_code: int, accept_any_status: bool) -> bool:
    if accept_any_status:
        return True
    return 200 <= status_code < 400


async def check_url(raw: str, config: ServiceConfig,
                    client: Optional[httpx.AsyncClient] = None) -> CheckResult:
    """
    Report whether `raw` answers an HTTP request.
    Network errors, redirect loops, timeouts and unencodable hosts all become
    success=False.
    """
    target_url = normalize_url(raw)
    headers = {"Accept": "*/*", "User-Agent": config.check_user_agent}
    logger.info("Checking URL: %s", target_url)

    owns_client = client is None
    if owns_client:
        client = httpx.AsyncClient(
            timeout=config.check_timeout,
            follow_redirects=True,
            max_redirects=config.max_redirects,
        )
    try:
        resp = await client.request(config.check_method, target_url, headers=headers,
                                    timeout=config.check_timeout)
    except (httpx.HTTPError, httpx.InvalidURL, UnicodeError) as e:
        # UnicodeError covers hosts httpx cannot IDNA-encode, e.g. "xn--.com"
        logger.error("Error accessing URL %s: %s", target_url, str(e) or type(e).__name__)
        return CheckResult(success=False, message=NOT_ACCESSIBLE, url=target_url)
    finally:
        if owns_client:
            await client.aclose()

    logger.info("%s %s -> %s", config.check_method, target_url, resp.status_code)
    if not status_is_acceptable(resp.status_code, config.accept_any_status):
        return CheckResult(success=False, message=f"URL returned HTTP {resp.status_code}",
                           url=target_url, status_code=resp.status_code)
    return CheckResult(success=True, message=ACCESSIBLE, url=target_url,
                       status_code=resp.status_code)

"""
FastAPI app that checks whether a URL is reachable, either with a single HTTP
request or by loading it in a headless Playwright browser.
Run locally:
  uvicorn app:app --host 0.0.0.0 --port 3001
or
  url-probe --port 3001
"""

# --- imports ---
import argparse
import logging
import time
from typing import Optional
from urllib.parse import urlsplit

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import JSONResponse
import uvicorn

from config import ServiceConfig
from models import CheckResult, HealthStatus, TestResult, UrlRequest, utc_timestamp
from reachability import check_url
from runner import run_browser_test

logger = logging.getLogger(__name__)
# --- end imports ---

VERSION = "1.0.0"


def configure_logging(config: ServiceConfig):
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def validate_target_url(url: str) -> Optional[str]:
    """Return a reason string when `url` is not an absolute URL, else None."""
    try:
        parts = urlsplit(url.strip())
    except ValueError as e:
        return str(e)
    if not parts.scheme or not parts.netloc:
        return "Invalid URL"
    if any(ch.isspace() for ch in parts.netloc):
        return "Invalid URL"
    return None


def _bad_request(message: str) -> JSONResponse:
    return JSONResponse(status_code=400, content={"success": False, "message": message})


def create_app(config: Optional[ServiceConfig] = None) -> FastAPI:
    """Build the service around an explicit config."""
    config = config or ServiceConfig()
    configure_logging(config)
    app = FastAPI(title="URL Probe Service", version=VERSION)
    app.state.config = config
    app.state.started_at = time.monotonic()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(config.cors_origins),
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000
        logger.info("%s %s %s - %.0fms", request.method, request.url.path,
                    response.status_code, duration_ms)
        return response

    # ----- error shapes -----
    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        logger.warning("Rejected malformed body on %s: %s", request.url.path, exc.errors())
        return _bad_request("Request body must be a JSON object with a 'url' string")

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            message = f"Route not found: {request.url.path}"
        else:
            message = str(exc.detail)
        return JSONResponse(status_code=exc.status_code,
                            content={"success": False, "message": message})

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        content = {"success": False, "message": "Internal server error"}
        if not config.is_production:
            content["error"] = str(exc)
        return JSONResponse(status_code=500, content=content)

    # ----- routes -----
    @app.get("/")
    async def banner():
        return {
            "status": "ok",
            "message": "URL Probe Service is running",
            "version": VERSION,
            "timestamp": utc_timestamp(),
            "endpoints": {
                "POST /run-test": "Load the URL in the request body in a headless browser",
                "GET /run-test": f"Legacy: load {config.default_target_url} and check its title",
                "POST /api/check-url": "Check whether the URL in the request body answers HTTP",
                "GET /health": "Service health and uptime",
            },
        }

    @app.get("/health", response_model=HealthStatus)
    async def health():
        uptime = max(0.0, time.monotonic() - app.state.started_at)
        return HealthStatus(uptime=uptime)

    @app.get("/api/hello")
    async def hello():
        return {"message": "URL Probe API", "timestamp": utc_timestamp(), "status": "success"}

    @app.post("/api/check-url", response_model=CheckResult, response_model_exclude_none=True)
    async def handle_check_url(payload: Optional[UrlRequest] = None):
        url = payload.url if payload else None
        logger.info("Received URL check request: %s", url)
        if not url or not url.strip():
            return _bad_request("URL is required")
        return await check_url(url, config)

    @app.post("/run-test", response_model=TestResult, response_model_exclude_none=True)
    async def handle_run_test(payload: Optional[UrlRequest] = None):
        url = payload.url if payload else None
        logger.info("Received request to run Playwright test")
        if not url or not url.strip():
            return _bad_request("URL is required in the request body")
        reason = validate_target_url(url)
        if reason:
            return _bad_request(f"Invalid URL format: {reason}")

        url = url.strip()
        logger.info("Testing URL: %s", url)
        result = await run_browser_test(url, config, expected_title=config.expected_title)
        logger.info("Sending test result: success=%s message=%s", result.success, result.message)
        return result

    @app.get("/run-test", response_model=TestResult, response_model_exclude_none=True)
    async def handle_legacy_run_test():
        logger.info("Received GET request to run Playwright test (legacy endpoint)")
        result = await run_browser_test(config.default_target_url, config,
                                        expected_title=config.legacy_expected_title)
        logger.info("Sending test result: success=%s message=%s", result.success, result.message)
        return result

    return app


def main():
    """Run the service under uvicorn."""
    config = ServiceConfig.from_env()
    parser = argparse.ArgumentParser(description="URL probe HTTP service.")
    parser.add_argument("--host", default=config.host)
    parser.add_argument("--port", type=int, default=config.port)
    args = parser.parse_args()
    config = config.model_copy(update={"host": args.host, "port": args.port})

    service = create_app(config)
    logger.info("Server is running on http://%s:%s", config.host, config.port)
    logger.info("Browser test endpoint at http://%s:%s/run-test", config.host, config.port)
    logger.info("Health check available at http://%s:%s/health", config.host, config.port)
    # uvicorn stops accepting connections on SIGINT/SIGTERM and drops what is
    # left once the grace period runs out
    uvicorn.run(
        service,
        host=config.host,
        port=config.port,
        timeout_graceful_shutdown=config.shutdown_grace,
    )


app = create_app(ServiceConfig.from_env())


if __name__ == "__main__":
    main()

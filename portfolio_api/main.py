import logging
import math
import os
import time
import uuid
from pathlib import Path
from typing import Any, Optional

from fastapi import Depends, FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from portfolio_api.env import Env, build_env
from portfolio_api.errors import ClientError, UpstreamError
from portfolio_api.generator import generate_layout
from portfolio_api.insights import fetch_github_activity, fetch_weather, geocode_city, visitor_location
from portfolio_api.layouts import get_default_layout
from portfolio_api.models import FeedbackRequest, FeedbackResponse, GenerateRequest
from portfolio_api.ratelimit import (
    check_generate_rate_limit,
    check_rate_limit,
    client_ip,
    update_generate_rate_limit,
    update_rate_limit,
)
from portfolio_api.visitor import extract_visitor_context

if not logging.getLogger().handlers:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

log = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}

FEEDBACK_TYPES = {"like", "dislike"}


def get_env(request: Request) -> Env:
    return request.app.state.env


def _error(status: int, message: str) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status)


def _feedback(status: int = 200, **fields: Any) -> JSONResponse:
    return JSONResponse(FeedbackResponse(**fields).to_json_dict(), status_code=status)


def create_app(env: Optional[Env] = None) -> FastAPI:
    app = FastAPI(title="Portfolio Personalizer API")
    app.state.env = env or build_env()

    assets_dir = Path(app.state.env.settings.assets_dir)
    if assets_dir.exists():
        app.mount("/assets", StaticFiles(directory=str(assets_dir), html=False), name="assets")

    @app.middleware("http")
    async def cors_and_request_log(request: Request, call_next):
        rid = str(uuid.uuid4())
        start = time.time()
        request.state.request_id = rid
        if request.method == "OPTIONS":
            response = Response(status_code=204)
        else:
            try:
                response = await call_next(request)
            except Exception:
                log.exception("request.error rid=%s path=%s", rid, request.url.path)
                response = _error(500, "Internal server error")
        response.headers.update(CORS_HEADERS)
        dur_ms = int((time.time() - start) * 1000)
        log.info(
            "request rid=%s method=%s path=%s status=%s dur_ms=%d",
            rid, request.method, request.url.path, response.status_code, dur_ms,
        )
        return response

    @app.exception_handler(ClientError)
    async def client_error_handler(request: Request, exc: ClientError):
        return _error(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        log.info("request.invalid path=%s errors=%d", request.url.path, len(exc.errors()))
        if request.url.path == "/api/feedback":
            return _feedback(400, success=False, message="Invalid request body")
        return _error(400, "Invalid request body")

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code in (404, 405):
            return _error(404, "Not found")
        return _error(exc.status_code, str(exc.detail))

    @app.get("/api/health")
    def health():
        return {"status": "ok"}

    @app.post("/api/generate")
    def generate_endpoint(body: GenerateRequest, request: Request, env: Env = Depends(get_env)):
        if not body.visitor_tag or body.portfolio_content is None:
            raise ClientError("Missing required fields")

        ip = client_ip(request.headers)
        limit = check_generate_rate_limit(env.store, ip, env.clock())
        if limit.limited:
            log.info("generate.rate_limited ip=%s retry_after=%s", ip, limit.retry_after)
            payload = get_default_layout(body.visitor_tag, body.portfolio_content).to_json_dict()
            payload["_rateLimited"] = True
            payload["_retryAfter"] = limit.retry_after
            return payload
        update_generate_rate_limit(env.store, ip, env.clock())

        context = extract_visitor_context(request.headers, request.scope.get("http_version"))
        return generate_layout(body, context, env)

    @app.post("/api/feedback")
    def feedback_endpoint(body: FeedbackRequest, env: Env = Depends(get_env)):
        if not (body.feedback_type and body.audience_type and body.cache_key and body.session_id):
            return _feedback(400, success=False, message="Missing required fields")
        if body.feedback_type not in FEEDBACK_TYPES:
            return _feedback(400, success=False, message="Invalid feedback type")

        log.info(
            "feedback.event audience=%s type=%s session=%s",
            body.audience_type, body.feedback_type, body.session_id,
        )
        if body.feedback_type == "like":
            return _feedback(success=True, message="Thank you for your feedback!", regenerate=False)

        limit = check_rate_limit(env.store, body.session_id, env.clock())
        if limit.limited:
            return _feedback(
                success=False,
                message="Please wait before requesting another regeneration",
                rate_limited=True,
                retry_after=limit.retry_after,
            )

        if env.store is not None:
            try:
                env.store.delete(body.cache_key)
            except Exception as exc:
                log.warning("feedback.cache_error key=%s: %s", body.cache_key, exc)
        update_rate_limit(env.store, body.session_id, env.clock())
        return _feedback(success=True, message="Regenerating your personalized layout...", regenerate=True)

    @app.get("/api/github/activity")
    def github_activity(username: Optional[str] = None, env: Env = Depends(get_env)):
        name = (username or "").strip() or env.settings.default_github_user
        data = fetch_github_activity(name, env)
        return data or {"contributions": [], "totalCommits": 0, "recentActivity": 0}

    @app.get("/api/weather")
    def weather(
        request: Request,
        lat: Optional[str] = None,
        lon: Optional[str] = None,
        visitor: Optional[str] = None,
        env: Env = Depends(get_env),
    ):
        if visitor == "true":
            context = extract_visitor_context(request.headers)
            location = visitor_location(context, env)
            return fetch_weather(location["lat"], location["lon"], location["name"], env)

        if not lat or not lon:
            return _error(400, "Missing required parameters: lat and lon (or use visitor=true)")
        try:
            latitude, longitude = float(lat), float(lon)
        except ValueError:
            return _error(400, "Invalid lat/lon values")
        if not (math.isfinite(latitude) and math.isfinite(longitude)):
            return _error(400, "Invalid lat/lon values")
        return fetch_weather(latitude, longitude, None, env)

    @app.get("/api/geocode")
    def geocode(city: Optional[str] = None, env: Env = Depends(get_env)):
        if not city or len(city.strip()) < 2:
            return _error(400, "Missing or invalid city parameter (min 2 characters)")
        try:
            result = geocode_city(city, env)
        except UpstreamError as exc:
            log.warning("geocode.error city=%s: %s", city, exc)
            return _error(500, "Failed to geocode city")
        if result is None:
            return _error(404, f"City not found: {city}")
        return result

    return app


app = create_app()

"""
IP API - FastAPI application

ip-api compatible lookups from local GeoLite2 databases, enriched with
neighbouring countries and spoken languages refreshed from GeoNames.
"""
import ipaddress
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config.settings import Settings, settings as default_settings
from ipapi import APP_NAME, APP_VERSION
from ipapi.log import configure_logging
from ipapi.services import Services, build_services

logger = logging.getLogger("main")


def fail(message: str, status_code: int) -> JSONResponse:
    """ip-api style error body."""
    return JSONResponse({"status": "fail", "message": message}, status_code=status_code)


def extract_client_ip(request: Request) -> str:
    """
    Best guess at the caller's address behind proxies.

    Order: first X-Forwarded-For entry, CF-Connecting-IP, X-Real-IP,
    then the socket peer.
    """
    headers = request.headers

    forwarded_for = headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    cf_ip = headers.get("CF-Connecting-IP")
    if cf_ip:
        return cf_ip.strip()

    real_ip = headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    return request.client.host if request.client else ""


def create_app(settings: Optional[Settings] = None, configure_logs: bool = True) -> FastAPI:
    """Build the application; services are created and torn down by the lifespan."""
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # === on startup ===
        if configure_logs:
            configure_logging(settings.log_level, settings.log_format)
        logger.info(f"Starting IP API service v{APP_VERSION}")

        services = build_services(settings)
        services.start()
        app.state.services = services

        yield

        # === on shutdown ===
        logger.info("Shutting down...")
        services.close()
        logger.info("Services stopped")

    app = FastAPI(title=APP_NAME, version=APP_VERSION, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    def lookup_response(request: Request, ip: str) -> JSONResponse:
        try:
            ipaddress.ip_address(ip)
        except ValueError:
            return fail("Invalid IP address", 400)

        services: Services = request.app.state.services
        if services.lookup is None:
            return fail("GeoIP databases not loaded", 503)

        try:
            return JSONResponse(services.lookup.lookup(ip))
        except Exception as e:
            logger.error(f"Lookup failed for {ip}: {e}")
            return fail("IP lookup failed", 500)

    @app.get("/health")
    def health_check():
        """Health check endpoint."""
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
        }

    @app.get("/stats")
    def stats(request: Request):
        """Refresh and cache statistics."""
        return request.app.state.services.get_stats()

    @app.get("/")
    def lookup_caller(request: Request):
        """Look up the caller's own address."""
        return lookup_response(request, extract_client_ip(request))

    @app.get("/{ip}")
    def lookup_ip(ip: str, request: Request):
        """Look up an explicit address."""
        return lookup_response(request, ip)

    return app


app = create_app()

"""
FastAPI server for the pairing service
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..config.config import PairbotConfig
from ..connection.status import BotStatus
from ..gateway.auth import require_admin_key
from ..gateway.error_codes import InternalError, NotFoundError, PairbotError, ValidationError
from ..gateway.rate_limit import SlidingWindowRateLimiter, install_rate_limiting
from ..service import PairingService
from .pages import render_index, status_color, status_text

logger = logging.getLogger(__name__)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
    "X-DNS-Prefetch-Control": "off",
}


# Request models
class GenerateCodeRequest(BaseModel):
    """Pairing code request"""

    phoneNumber: str | None = None
    countryCode: str | None = None


class VerifyCodeRequest(BaseModel):
    """Pairing code verification request"""

    code: str | None = None


def get_service(request: Request) -> PairingService:
    return request.app.state.service


def _status_payload(service: PairingService) -> dict[str, Any]:
    snapshot = service.mirror.status
    company = service.config.company
    return {
        **snapshot.to_dict(),
        "statusText": status_text(snapshot.status),
        "statusColor": status_color(snapshot.status),
        "pairingCodes": len(service.registry),
        "codes": service.registry.counts(),
        "generatedCodes": service.registry.generated_count,
        "lastCode": service.registry.last_display_code,
        "company": company.name,
        "version": company.version,
        "uptime": service.uptime,
    }


def _verify(service: PairingService, code: str | None) -> dict[str, Any]:
    if not code or not code.strip():
        raise ValidationError("Code is required")

    record = service.verify_code(code)
    if record is None:
        raise NotFoundError()

    message = "Pairing code already linked" if record.status.value == "linked" else "Valid pairing code"
    return {"success": True, "valid": True, "message": message, "data": record.to_dict()}


def _install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(PairbotError)
    async def pairbot_error_handler(request: Request, exc: PairbotError):
        return JSONResponse(status_code=exc.http_status, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        error = ValidationError("Invalid request body")
        return JSONResponse(status_code=error.http_status, content=error.to_dict())

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == status.HTTP_404_NOT_FOUND:
            return JSONResponse(status_code=404, content={"success": False, "message": "Endpoint not found"})
        return JSONResponse(status_code=exc.status_code, content={"success": False, "message": str(exc.detail)})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
        error = InternalError()
        return JSONResponse(status_code=error.http_status, content=error.to_dict())


def create_app(service: PairingService | None = None, config: PairbotConfig | None = None) -> FastAPI:
    """Create FastAPI application"""
    if service is None:
        service = PairingService(config)
    config = service.config

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting pairing server...")
        await service.start()
        yield
        await service.stop()
        logger.info("Server closed")

    app = FastAPI(
        title=f"{config.company.name} WhatsApp Pairing Service",
        version=config.company.version,
        lifespan=lifespan,
    )
    app.state.service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        for header, value in SECURITY_HEADERS.items():
            response.headers.setdefault(header, value)
        return response

    app.state.rate_limiter = SlidingWindowRateLimiter(
        max_requests=config.server.rate_limit_max_requests,
        window_seconds=config.server.rate_limit_window_seconds,
    )
    install_rate_limiting(app, app.state.rate_limiter, trust_proxy=config.server.trust_proxy)

    _install_error_handlers(app)

    @app.get("/", response_class=HTMLResponse, tags=["Pages"])
    async def index(service: PairingService = Depends(get_service)):
        """Status page with the pairing form"""
        snapshot = service.mirror.status
        company = service.config.company
        return render_index(
            company=company.name,
            version=company.version,
            logo_url=company.logo_url,
            contact=company.contact,
            email=company.email,
            website=company.website,
            status=snapshot.status,
            pairing_count=len(service.registry),
            last_code=service.registry.last_display_code,
            qr_attempts=snapshot.qr_attempts,
            phone_example=service.config.pairing.phone_example,
        )

    @app.post("/generate-code", tags=["Pairing"])
    @app.post("/api/generate-code", tags=["Pairing"])
    async def generate_code(body: GenerateCodeRequest, service: PairingService = Depends(get_service)):
        """
        Generate a pairing code for a phone number

        Returns 400 when the phone number is missing or invalid.
        """
        if not body.phoneNumber or not body.phoneNumber.strip():
            raise ValidationError("Phone number is required")

        record, phone = service.generate_code(body.phoneNumber)
        return {
            "success": True,
            "code": record.code,
            "displayCode": record.display_code,
            "phoneNumber": phone.e164,
            "international": phone.international,
            "country": phone.country,
            "countryCode": phone.country_code,
            "sessionId": record.session_id,
            "createdAt": record.created_at.isoformat(),
            "expiresAt": record.expires_at.isoformat(),
            "status": record.status.value,
            "message": f"{service.config.company.name}: Pairing code generated successfully!",
        }

    @app.post("/getqr", tags=["Connection"])
    async def get_qr(service: PairingService = Depends(get_service)):
        """Current QR code image, when the session is waiting for a scan"""
        snapshot = service.mirror.status
        if snapshot.qr_ready:
            return {
                "success": True,
                "qrImage": snapshot.qr_image,
                "message": "Scan this QR code in WhatsApp",
                "status": snapshot.status.value,
                "manualInterventionRequired": snapshot.manual_intervention_required,
            }

        return {
            "success": False,
            "message": "QR code not available yet. Please wait for connection...",
            "status": snapshot.status.value,
            "qrAttempts": snapshot.qr_attempts,
            "maxAttempts": snapshot.max_qr_attempts,
        }

    @app.get("/status", tags=["Connection"])
    @app.get("/api/status", tags=["Connection"])
    async def get_status(service: PairingService = Depends(get_service)):
        """Connection status, code counters and uptime"""
        return _status_payload(service)

    @app.post("/verify-code", tags=["Pairing"])
    async def verify_code(body: VerifyCodeRequest, service: PairingService = Depends(get_service)):
        """Check a pairing code (raw or XXXX-XXXX form)"""
        return _verify(service, body.code)

    @app.get("/api/verify-code/{code}", tags=["Pairing"])
    async def verify_code_path(code: str, service: PairingService = Depends(get_service)):
        return _verify(service, code)

    @app.get("/admin/codes", tags=["Admin"], dependencies=[Depends(require_admin_key)])
    async def admin_codes(service: PairingService = Depends(get_service)):
        """All pairing records, oldest first"""
        codes = [record.to_dict() for record in service.registry.list_records()]
        return {"success": True, "count": len(codes), "codes": codes}

    # Health endpoints
    @app.get("/health", tags=["Health"])
    async def health(service: PairingService = Depends(get_service)):
        return {
            "status": "healthy",
            "service": "WhatsApp Pairing Service",
            "company": service.config.company.name,
            "uptime": service.uptime,
            "botStatus": service.mirror.status.status.value,
        }

    @app.get("/ping", tags=["Health"])
    async def ping():
        return {"status": "ok", "message": "pong", "timestamp": datetime.now(UTC).isoformat()}

    @app.get("/live", tags=["Health"])
    async def liveness():
        """Liveness probe: the process is serving requests"""
        return {"status": "ok", "timestamp": datetime.now(UTC).isoformat()}

    @app.get("/ready", tags=["Health"])
    async def readiness(service: PairingService = Depends(get_service)):
        """Readiness probe: the registry sweeper is running"""
        if not service.sweeper.running:
            return JSONResponse(status_code=503, content={"status": "not ready"})
        return {
            "status": "ready",
            "online": service.mirror.status.status is BotStatus.ONLINE,
            "timestamp": datetime.now(UTC).isoformat(),
        }

    return app


async def run_api_server(config: PairbotConfig, service: PairingService | None = None) -> None:
    """Run API server."""
    import uvicorn

    app = create_app(service, config)

    server_config = uvicorn.Config(app, host=config.server.host, port=config.server.port, log_level="info")
    server = uvicorn.Server(server_config)
    logger.info(f"Server running on http://{config.server.host}:{config.server.port}")
    await server.serve()

import time
from datetime import datetime, timezone
from typing import Optional

import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from coursepay.config import Settings, load_settings
from coursepay.database import database_time, get_db, init_db, make_engine, make_session_factory
from coursepay.errors import register_error_handlers
from coursepay.logger import get_logger
from coursepay.razorpay_service import RazorpayGateway, build_gateway
from coursepay.routes import auth_router, payment_router
from coursepay.security import PasswordHasher, TokenService

logger = get_logger(__name__)


def create_app(
    settings: Settings,
    password_hasher: Optional[PasswordHasher] = None,
    payment_gateway: Optional[RazorpayGateway] = None,
) -> FastAPI:
    app = FastAPI(title="Course Platform Backend")

    engine = make_engine(settings.database_url)
    init_db(engine)

    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = make_session_factory(engine)
    app.state.token_service = TokenService(settings.jwt_secret)
    app.state.password_hasher = password_hasher or PasswordHasher()
    app.state.payment_gateway = payment_gateway or build_gateway(settings)

    register_error_handlers(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.time()
        response = await call_next(request)
        if request.url.path.startswith("/api"):
            duration = round((time.time() - start) * 1000, 1)
            logger.info("%s %s -> %s (%sms)", request.method, request.url.path, response.status_code, duration)
        return response

    app.include_router(auth_router)
    app.include_router(payment_router)

    @app.get("/api/health", tags=["Health"])
    def health(request: Request, db: Session = Depends(get_db)):
        now = datetime.now(timezone.utc).isoformat()
        try:
            db_time = database_time(db)
        except Exception as e:
            logger.exception("Health check failed")
            return JSONResponse(
                status_code=500,
                content={
                    "success": False,
                    "status": "ERROR",
                    "message": "Database connection failed",
                    "error": str(e),
                    "timestamp": now,
                },
            )

        return {
            "success": True,
            "status": "OK",
            "message": "Course Platform Backend is running!",
            "database": "Connected",
            "timestamp": now,
            "db_time": str(db_time),
            "environment": settings.environment,
            "razorpay_configured": request.app.state.payment_gateway is not None,
        }

    logger.info(
        "Environment: %s, Razorpay: %s",
        settings.environment,
        "configured" if app.state.payment_gateway else "not configured",
    )
    return app


def main():
    settings = load_settings()
    app = create_app(settings)
    uvicorn.run(app, host="0.0.0.0", port=settings.port, log_level="info")


if __name__ == "__main__":
    main()

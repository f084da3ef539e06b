import logging
import sys

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

import config
from ecpay_routes import router as ecpay_router

logger = logging.getLogger(__name__)


def create_app(settings: config.Settings) -> FastAPI:
    app = FastAPI(title="ECPay Relay")
    app.state.settings = settings
    app.include_router(ecpay_router, prefix="/ecpay", tags=["ECPay"])

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.exception("路由錯誤: %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={"success": False, "message": "內部伺服器錯誤"},
        )

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


def load_settings_or_exit() -> config.Settings:
    try:
        return config.load_settings()
    except config.ConfigError as e:
        logging.error("%s", e)
        sys.exit(1)


def get_app() -> FastAPI:
    """uvicorn factory: ``uvicorn main:get_app --factory``"""
    settings = load_settings_or_exit()
    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(message)s")
    logger.info(
        "ECPay relay for merchant %s (%s)",
        settings.credentials.merchant_id,
        "sandbox" if settings.sandbox else "production",
    )
    return create_app(settings)


if __name__ == "__main__":
    uvicorn.run("main:get_app", factory=True, host="0.0.0.0", port=8000, log_level="warning")

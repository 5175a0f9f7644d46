from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from schoolbot.config import get_settings
from schoolbot.api.assistant import router as assistant_router, limiter
from schoolbot.api.bot_webhooks import router as bot_webhooks_router
from schoolbot.api.webhooks import router as webhooks_router
from schoolbot.messenger.bot_api import close_bot_apis
from schoolbot.messenger.logging_config import bot_logger as logger
from schoolbot.services.assistant_proxy import close_assistant_proxy

app = FastAPI(
    title="School Messenger Bot",
    description="Telegram and Bale bridge to the school AI assistant",
    version="0.1.0"
)

app.state.limiter = limiter


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        {"error": "تعداد درخواست‌ها بیش از حد مجاز است. لطفاً کمی بعد دوباره تلاش کنید."},
        status_code=429,
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Errors are {"error": "..."} bodies across the API."""
    return JSONResponse({"error": str(exc.detail)}, status_code=exc.status_code, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Invalid request to {request.url.path}: {exc.errors()}")
    return JSONResponse({"error": "درخواست نامعتبر است."}, status_code=422)


@app.on_event("shutdown")
async def shutdown_event():
    """Close shared HTTP clients."""
    logger.info("[SHUTDOWN] Closing messenger and assistant clients...")
    await close_bot_apis()
    await close_assistant_proxy()


# CORS for the school dashboard
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    settings = get_settings()
    return {
        "status": "ok",
        "environment": settings.environment,
        "version": "0.1.0"
    }


app.include_router(webhooks_router)
app.include_router(assistant_router)
app.include_router(bot_webhooks_router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=get_settings().port)

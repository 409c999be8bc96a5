import asyncio
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from storeapi.core import config
from storeapi.core.errors import AppError, ConfigurationError
from storeapi.database import SessionLocal, init_db
from storeapi.logger import get_logger
from storeapi.routers import auth, products, users
from storeapi.services.otp_service import OtpService

logger = get_logger(__name__)


def sweep_expired_otps() -> int:
    db = SessionLocal()
    try:
        return OtpService(db).sweep_expired()
    finally:
        db.close()


async def otp_sweeper(interval: float):
    while True:
        await asyncio.sleep(interval)
        try:
            removed = await run_in_threadpool(sweep_expired_otps)
            if removed:
                logger.info("Expired OTPs cleaned up: %s", removed)
        except Exception:
            logger.exception("OTP sweep failed")


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    task = asyncio.create_task(otp_sweeper(config.OTP_SWEEP_INTERVAL_SECONDS))
    logger.info("Server started (env=%s)", config.APP_ENV)
    try:
        yield
    finally:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass


app = FastAPI(title="Store API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed = (time.perf_counter() - started) * 1000
    logger.info("%s %s -> %s (%.1f ms)", request.method, request.url.path, response.status_code, elapsed)
    return response


# ----------------- ERRORS -----------------
def error_response(status_code: int, message: str, exc: Exception = None) -> JSONResponse:
    body = {"success": False, "message": message}
    if config.DEBUG and exc is not None:
        body["type"] = type(exc).__name__
    return JSONResponse(status_code=status_code, content=body)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if isinstance(exc, ConfigurationError):
        logger.error("Configuration error on %s: %s", request.url.path, exc.message)
        return error_response(500, exc.message if config.DEBUG else "Something went wrong", exc)
    if exc.status_code >= 500:
        logger.error("%s on %s: %s", type(exc).__name__, request.url.path, exc.message)
    return error_response(exc.status_code, exc.message, exc)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ())[1:])
        message = f"{field}: {first.get('msg')}" if field else first.get("msg")
    else:
        message = "Invalid request"
    return error_response(400, message, exc)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s", request.url.path)
    return error_response(500, str(exc) if config.DEBUG else "Something went wrong", exc)


# ----------------- ROUTES -----------------
@app.get("/")
def home():
    return {"status": "ok", "message": "Store API is running"}


@app.get("/health")
def health():
    return {"status": "healthy"}


app.include_router(auth.router, prefix="/api/auth")
app.include_router(users.profile_router, prefix="/api/profile")
app.include_router(users.admin_router, prefix="/api/user-management")
app.include_router(products.router, prefix="/api/product-management")

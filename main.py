import asyncio
import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlmodel import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from core.config import get_settings
from core.database import create_db_and_tables, get_engine
from core.errors import MessServiceError
from routes.members import router as members_router
from routes.payment import router as payment_router
from routes.subscription_requests import router as subscription_requests_router
from routes.users import router as users_router
from services.subscription_store import SubscriptionStore

load_dotenv()
settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# =========================================
# ⏱️ Cached status refresh
# =========================================
def refresh_cached_statuses() -> int:
    """Expiry moves with the clock, so rewrite drifted payment/membership statuses."""
    with Session(get_engine()) as session:
        return SubscriptionStore(session).refresh_stale_statuses()


async def run_periodic_refresh(interval_seconds: int):
    while True:
        try:
            await asyncio.to_thread(refresh_cached_statuses)
        except Exception as e:
            logger.exception(f"❌ Status refresh failed: {e}")
        await asyncio.sleep(interval_seconds)


# =========================================
# 🏁 Lifespan (DB initialization)
# =========================================
@asynccontextmanager
async def lifespan(app: FastAPI):
    create_db_and_tables()
    logger.info("✅ Database tables created on startup.")

    refresh_task = None
    if settings.STATUS_REFRESH_INTERVAL_SECONDS > 0:
        refresh_task = asyncio.create_task(run_periodic_refresh(settings.STATUS_REFRESH_INTERVAL_SECONDS))
    yield
    if refresh_task:
        refresh_task.cancel()
    logger.info("✅ Application shutting down.")


# =========================================
#  ✅ FastAPI App
# =========================================
app = FastAPI(lifespan=lifespan, title="Mess Subscription Backend")

allowed_origins = [
    settings.FRONTEND_URL,
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =========================================
# 🚨 Error responses: {"success": false, "error": ...}
# =========================================
@app.exception_handler(MessServiceError)
async def mess_service_error_handler(request: Request, exc: MessServiceError):
    if exc.status_code >= 500:
        logger.error(f"❌ {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_content())


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(part) for part in first.get("loc", ())[1:])
    message = f"{field}: {first.get('msg')}" if field else first.get("msg", "Invalid request")
    return JSONResponse(status_code=400, content={"success": False, "error": message})


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"success": False, "error": exc.detail})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"❌ Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"success": False, "error": "Internal server error"})


# =========================================
# 📦 Routers
# =========================================
app.include_router(users_router, prefix="/api")
app.include_router(payment_router, prefix="/api")
app.include_router(members_router, prefix="/api")
app.include_router(subscription_requests_router, prefix="/api")


# =========================================
# 🩺 Health Check
# =========================================
@app.get("/health")
def health_check():
    return {"status": "ok", "message": "Backend is running"}


@app.get("/")
def read_root():
    return {"message": "Welcome to the Mess Subscription Backend!"}

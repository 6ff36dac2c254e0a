from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
import uvicorn
import time
import logging

from omnibox.db.database import init_db, check_db_connection
from omnibox.api.messages import router as messages_router
from omnibox.api.inbox import router as inbox_router
from omnibox.api.webhooks import router as webhooks_router
from omnibox.api.twilio import router as twilio_router
from omnibox.core.config import settings
from omnibox.integrations.factory import SenderFactory
from omnibox.security.error_handlers import error_handler

# Set up logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

# Silence noisy third-party loggers
logging.getLogger('twilio.http_client').setLevel(logging.WARNING)
logging.getLogger('httpx').setLevel(logging.WARNING)
logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)
logging.getLogger('uvicorn.access').setLevel(logging.WARNING)

logging.getLogger('omnibox').setLevel(settings.LOG_LEVEL.upper())

logger = logging.getLogger(__name__)

# Lifespan context manager for startup/shutdown
@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"🚀 Starting up {settings.PROJECT_NAME} API ({settings.ENVIRONMENT})...")

    try:
        await init_db()
        logger.info("✅ Database initialized successfully")
    except Exception as e:
        logger.error(f"❌ Database initialization failed: {e}")
        raise

    if not settings.twilio_configured:
        logger.warning("⚠️  Twilio credentials not configured - SMS and WhatsApp sends will fail")
    if not settings.sendgrid_configured:
        logger.warning("⚠️  SendGrid not configured - email sends will fail")

    logger.info("✅ Application startup complete")
    yield
    logger.info("🛑 Application shutdown complete")

# Create FastAPI app
app = FastAPI(
    title="Omnibox Unified Inbox",
    version=settings.API_VERSION,
    description="Unified inbox for SMS, WhatsApp and Email",
    lifespan=lifespan
)

# Provider clients are shared across requests
app.state.sender_factory = SenderFactory(settings)

cors_origins = settings.trusted_origins
logger.info(f"🌐 CORS origins: {cors_origins}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all incoming requests with status and timing"""
    start_time = time.time()
    client_host = request.client.host if request.client else 'unknown'

    logger.info(f"📨 HTTP: {request.method} {request.url.path} from {client_host}")
    try:
        response = await call_next(request)
    except Exception as e:
        process_time = time.time() - start_time
        logger.error(f"❌ Error processing {request.url.path}: {e} ({process_time:.3f}s)")
        raise

    process_time = time.time() - start_time
    logger.info(f"✅ HTTP response: {response.status_code} ({process_time:.3f}s)")
    return response

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return await error_handler.handle_http_exception(request, exc)

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return await error_handler.handle_validation_error(request, exc)

@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    return await error_handler.handle_internal_error(request, exc)

# Routers
app.include_router(messages_router, prefix="/api")
app.include_router(inbox_router, prefix="/api")
app.include_router(webhooks_router, prefix="/api")
app.include_router(twilio_router, prefix="/api")

@app.get("/health")
async def health_check():
    """Primary health check endpoint"""
    database_ok = await check_db_connection()
    return {
        "status": "healthy" if database_ok else "degraded",
        "service": "omnibox",
        "version": settings.API_VERSION,
        "database": database_ok,
        "channels": {
            "sms": settings.twilio_configured,
            "whatsapp": settings.twilio_configured,
            "email": settings.sendgrid_configured
        },
        "timestamp": time.time()
    }


if __name__ == "__main__":
    logger.info("🚀 Starting server directly...")
    uvicorn.run(
        "omnibox.main:app",
        host="0.0.0.0",
        port=8000,
        reload=False,
        log_level="info"
    )

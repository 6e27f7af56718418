from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException
from dotenv import load_dotenv
import logging

from app.core.config import settings
from app.api.v1.api import api_router
from app.core.database import create_tables, dispose_engine
from app.core.exceptions import BaseAppException

# Load environment variables
load_dotenv()

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Configure audit logger (JSON lines)
audit_logger = logging.getLogger("audit")
if not audit_logger.handlers:
    handler = logging.StreamHandler()
    # Keep raw JSON line without extra prefixes
    handler.setFormatter(logging.Formatter("%(message)s"))
    audit_logger.addHandler(handler)
audit_logger.setLevel(logging.INFO)
# Do not propagate to root to avoid duplication
audit_logger.propagate = False

api_description = """
## Waitlist API

Pre-launch signups with email verification and an optional promotional post.

### Public

- `POST /waitlist` - join the waitlist (a verification email follows)
- `GET /verify-email/{token}` - confirm the email address
- `POST /waitlist/save-post` - attach an X/Twitter post URL once verified

### Admin

Every admin call carries `walletAddress`, `signature` and `message`; the
signature must recover to the configured admin wallet.
"""

app = FastAPI(
    title=settings.PROJECT_NAME,
    description=api_description,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# GZip compression for large JSON responses (admin listings, CSV)
app.add_middleware(GZipMiddleware, minimum_size=500)

# Set up CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error_body(message: str) -> dict:
    return {"success": False, "message": message}


@app.exception_handler(BaseAppException)
async def app_exception_handler(request: Request, exc: BaseAppException):
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc.message))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = "Invalid request"
    if errors:
        first = errors[0]
        text = str(first.get("msg", "")).replace("Value error, ", "", 1)
        field = next((str(p) for p in reversed(first.get("loc", ())) if p != "body" and not isinstance(p, int)), None)
        # Custom validator messages already name what is wrong
        if first.get("type") == "value_error" or not field:
            message = text
        else:
            message = f"{field}: {text}"
    return JSONResponse(status_code=400, content=_error_body(message))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    message = "Endpoint not found" if exc.status_code == 404 else str(exc.detail)
    return JSONResponse(status_code=exc.status_code, content=_error_body(message), headers=exc.headers)


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=_error_body("Internal server error"))


# Include API router
app.include_router(api_router, prefix=settings.API_PREFIX)


@app.on_event("startup")
def prepare_database():
    if settings.AUTO_CREATE_TABLES:
        create_tables()
        logger.info("Database tables ready")
    if not settings.ADMIN_WALLET_ADDRESS:
        logger.warning("ADMIN_WALLET_ADDRESS is not set; admin endpoints will refuse every request")
    if not settings.RESEND_API_KEY:
        logger.warning("RESEND_API_KEY is not set; verification emails cannot be delivered")


@app.on_event("shutdown")
def release_database():
    dispose_engine()


@app.get("/")
async def root():
    return {"message": f"{settings.PROJECT_NAME} is running"}


@app.get("/health")
async def health_check():
    return {"status": "healthy"}

import logging
from pathlib import Path

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from account_service.core.config import settings
from account_service.core.security import TokenService
from account_service.models import Base  # noqa: F401 - register models
from account_service.routers import health, users

app = FastAPI(
    title="Account Service API",
    description="User accounts: registration, login, password recovery, profile edit and deletion",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, prefix="/health")
app.include_router(users.router, prefix=settings.API_PREFIX)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Badly typed or unparsable bodies answer in the same {status, message} shape as every account result."""
    fields = sorted(
        {err["loc"][-1] for err in exc.errors() if err.get("loc") and isinstance(err["loc"][-1], str)} - {"body"}
    )
    message = f"Invalid value for: {', '.join(fields)}" if fields else "Invalid request body"
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"status": status.HTTP_400_BAD_REQUEST, "message": message},
    )


# The signing secret is fixed for the life of the process
app.state.token_service = TokenService(settings.SECRET_KEY, settings.TOKEN_ALGORITHM)


@app.on_event("startup")
async def startup():
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger(__name__).info("Account service started (API prefix %r)", settings.API_PREFIX)


# Mounted last so it never shadows API routes
static_dir = Path(settings.STATIC_DIR)
if static_dir.is_dir():
    app.mount("/", StaticFiles(directory=str(static_dir), html=True), name="static")

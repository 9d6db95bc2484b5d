from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.routes import consultations, health, me, notifications, proposals, sempro
from app.core.config import get_settings
from app.core.exceptions import AppError, WorkflowError
from app.core.middleware import RequestSizeLimitMiddleware, SecurityHeadersMiddleware
from app.db.bootstrap import ensure_runtime_schema_compatibility

settings = get_settings()


@asynccontextmanager
async def lifespan(_: FastAPI):
    ensure_runtime_schema_compatibility()
    yield


async def app_error_handler(request: Request, exc: AppError):
    if isinstance(exc, WorkflowError):
        content = exc.to_payload()
    else:
        content = {"message": exc.message, "details": exc.details}
    return JSONResponse(status_code=exc.status_code, content=content)


app = FastAPI(title=settings.project_name, lifespan=lifespan)
app.add_exception_handler(AppError, app_error_handler)

app.add_middleware(RequestSizeLimitMiddleware, max_bytes=settings.max_request_size_bytes)
app.add_middleware(SecurityHeadersMiddleware, settings=settings)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, prefix=settings.api_prefix, tags=["health"])
app.include_router(me.router, prefix=settings.api_prefix, tags=["identity"])
app.include_router(proposals.router, prefix=settings.api_prefix, tags=["proposals"])
app.include_router(consultations.router, prefix=settings.api_prefix, tags=["consultations"])
app.include_router(sempro.router, prefix=settings.api_prefix, tags=["sempro"])
app.include_router(notifications.router, prefix=settings.api_prefix, tags=["notifications"])

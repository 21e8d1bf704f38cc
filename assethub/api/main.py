from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from assethub import __version__
from assethub.core.config import get_settings
from assethub.core.exceptions import AssetHubError
from assethub.core.logger import configure_logging
from assethub.api.routers import approvals, action_configs, roles, borrows, health
from assethub.api.middleware.request_log import RequestLogMiddleware
from assethub.api.schemas.common import ErrorResponse

settings = get_settings()
logger = configure_logging(settings)

app = FastAPI(
    title=settings.app_name,
    description="Approval and action resolution engine for asset management",
    version=__version__,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.debug else [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Request logging middleware
app.add_middleware(RequestLogMiddleware)


@app.exception_handler(AssetHubError)
async def asset_hub_error_handler(request: Request, exc: AssetHubError):
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=exc.code, detail=exc.message, context=exc.context or None).model_dump(),
    )


# Include routers
app.include_router(health.router)
app.include_router(approvals.router, prefix="/api")
app.include_router(action_configs.router, prefix="/api")
app.include_router(roles.router, prefix="/api")
app.include_router(borrows.router, prefix="/api")


@app.get("/")
async def root():
    return {
        "name": settings.app_name,
        "version": __version__,
        "docs": "/docs" if settings.debug else None,
    }

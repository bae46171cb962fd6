import httpx
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi
from app.config import settings
from app.database import Database
from app.core.logging import setup_logging, get_logger
from app.core.exceptions import api_exception_handler, general_exception_handler, APIError
from app.core.middleware import session_validation_middleware, request_logging_middleware
from app.services.edge_functions import EdgeFunctionClient
from app.services.registration_flow import RegistrationFlowStore

# Initialize logging
setup_logging()
logger = get_logger(__name__)

SERVICE_NAME = "Event Participant API"
SERVICE_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create shared resources on startup and release them on shutdown"""
    app.state.db = Database(
        settings.database_url,
        min_size=settings.db_pool_min_size,
        max_size=settings.db_pool_max_size
    )
    app.state.http_client = httpx.AsyncClient()
    app.state.edge_client = EdgeFunctionClient(
        app.state.http_client,
        settings.functions_url,
        settings.supabase_anon_key
    )
    app.state.flow_store = RegistrationFlowStore(settings.registration_flow_ttl_minutes)
    logger.info(f"{SERVICE_NAME} starting ({settings.app_env})")

    yield

    await app.state.http_client.aclose()
    await app.state.db.close_pool()
    logger.info(f"{SERVICE_NAME} stopped")


app = FastAPI(
    title=SERVICE_NAME,
    description="Backend for the event participant app: events, registration, event-day zone and settings",
    version=SERVICE_VERSION,
    debug=settings.debug,
    docs_url="/docs",
    redirect_slashes=True,
    lifespan=lifespan
)


def custom_openapi():
    if app.openapi_schema:
        return app.openapi_schema
    openapi_schema = get_openapi(
        title=SERVICE_NAME,
        version=SERVICE_VERSION,
        description="Backend for the event participant app",
        routes=app.routes,
    )
    openapi_schema.setdefault("components", {})["securitySchemes"] = {
        "bearerAuth": {
            "type": "http",
            "scheme": "bearer",
            "bearerFormat": "JWT"
        }
    }

    # Public endpoints (no auth required)
    public_endpoints = ["/health", "/"]

    for path in openapi_schema["paths"]:
        if path in public_endpoints:
            continue

        for method in openapi_schema["paths"][path]:
            if method in ["get", "post", "put", "delete", "patch"]:
                openapi_schema["paths"][path][method]["security"] = [{"bearerAuth": []}]

    app.openapi_schema = openapi_schema
    return app.openapi_schema

app.openapi = custom_openapi

# Exception handlers
app.add_exception_handler(APIError, api_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Custom middleware (order matters - first added runs last)
# Execution order: session_validation → logging
app.middleware("http")(request_logging_middleware)    # runs last
app.middleware("http")(session_validation_middleware) # runs first

# Import and include routers
from app.routers import events, registrations, zone, polls, channels, circles, user_settings

# Event detail, tiers, saved status
app.include_router(events.router, prefix="/events", tags=["events"])

# Registration flow
app.include_router(registrations.router, prefix="/registrations", tags=["registrations"])

# Event-day zone: check-in, sessions, announcements, polls, channels
app.include_router(zone.router, tags=["zone"])
app.include_router(polls.router, tags=["polls"])
app.include_router(channels.router, tags=["channels"])

# Networking circles
app.include_router(circles.router, prefix="/circles", tags=["circles"])

# Per-user settings
app.include_router(user_settings.router, prefix="/settings", tags=["settings"])


@app.get("/")
async def root():
    return {
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "environment": settings.app_env
    }


@app.get("/health")
async def health():
    return {
        "status": "healthy",
        "environment": settings.app_env,
        "functions_url": settings.functions_url
    }


# Auto-start server if run directly
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )

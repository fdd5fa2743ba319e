"""
FastAPI application factory.
Creates the app with CORS, the access gate, auth initialization, and router registration.
Swagger UI available at /docs, ReDoc at /redoc.
"""
import sys
from pathlib import Path
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

# Ensure src/ is on the path
_src_dir = str(Path(__file__).parent.parent)
if _src_dir not in sys.path:
    sys.path.insert(0, _src_dir)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown logic for the FastAPI app."""
    import config
    from api.auth.dependencies import build_auth_from_config, init_auth
    from store.layout_store import init_layouts_bucket
    from utils.logger import get_logger

    logger = get_logger()
    logger.info(f"Initializing Caravan Ops API on port {config.API_PORT}", "API")

    # Wire up auth dependencies
    session_resolver, gate_config, supabase_auth = build_auth_from_config()
    init_auth(session_resolver, gate_config, supabase_auth)

    # Store on app state for route access
    app.state.gate_config = gate_config

    mode = "local JWT verification" if session_resolver.jwt_secret else "remote user lookup"
    logger.info(
        f"Access gate ready: {len(gate_config.allowed_emails)} allowed email(s), {mode}",
        "API",
    )

    # Missing bucket is not fatal; uploads will fail until it exists
    init_layouts_bucket()

    logger.info(f"Swagger UI: http://localhost:{config.API_PORT}/docs", "API")

    yield

    logger.info("Shutting down API server", "API")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    import config
    from api.auth.dependencies import get_gate_config, get_session_resolver
    from api.middleware.access_gate import AccessGateMiddleware

    app = FastAPI(
        title="Caravan Ops API",
        description=(
            "Operations backend for caravan production: dealer and production "
            "statistics from the schedule spreadsheet, van details, important "
            "tasks, upholstery orders, presets and layout images.\n\n"
            "**Authentication**: sign in with Google via `/login`. Only "
            "allow-listed emails get past the access gate."
        ),
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Register routers
    from api.routes.auth_routes import router as auth_router
    from api.routes.sheet_routes import router as sheet_router
    from api.routes.task_routes import router as task_router
    from api.routes.order_routes import router as order_router
    from api.routes.layout_routes import router as layout_router
    from api.routes.health_routes import router as health_router

    app.include_router(auth_router, tags=["Authentication"])
    app.include_router(sheet_router, tags=["Production"])
    app.include_router(task_router, prefix="/api/important-tasks", tags=["Important Tasks"])
    app.include_router(order_router, tags=["Upholstery"])
    app.include_router(layout_router, prefix="/api/layouts", tags=["Layouts"])
    app.include_router(health_router, prefix="/health", tags=["Health"])

    # Access gate runs inside CORS so preflight requests are answered first
    app.add_middleware(
        AccessGateMiddleware,
        get_resolver=get_session_resolver,
        get_gate=get_gate_config,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.API_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request, exc):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request, exc):
        return JSONResponse(
            status_code=422,
            content={"error": "Invalid request", "detail": jsonable_encoder(exc.errors())},
        )

    @app.get("/", tags=["Root"])
    async def root():
        """Service banner. Signed-in, allow-listed users are sent to /dashboard by the gate."""
        return {
            "service": "Caravan Ops API",
            "version": "1.0.0",
            "docs": "/docs",
            "health": "/health",
        }

    return app

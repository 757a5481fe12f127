import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .core.config import settings
from .db.database import SessionLocal, create_tables
from .commands.router import ProtocolRouter
from .services.credential_store import CredentialStore
from .services.network_scanner import NetworkScanner
from .routers.remote import router as remote_router
from .routers.network_discovery import router as network_discovery_router

# Configure logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    # Startup
    logger.info("Starting TV Remote backend...")

    # Create database tables
    create_tables()
    logger.info("Credential tables created")

    store = CredentialStore(SessionLocal)
    protocol_router = ProtocolRouter(store, settings)
    app.state.credential_store = store
    app.state.protocol_router = protocol_router
    app.state.network_scanner = NetworkScanner(protocol_router.probe_executors(), settings)
    logger.info("Command router and TV scanner ready")

    yield

    # Shutdown
    logger.info("Shutting down TV Remote backend...")


# Create FastAPI app
app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.PROJECT_VERSION,
    description="Network TV remote: command dispatch, pairing and discovery",
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include remote control router
app.include_router(
    remote_router
)

# Include network discovery router
app.include_router(
    network_discovery_router
)


@app.get("/health")
async def health_check():
    return {"status": "healthy", "service": settings.PROJECT_NAME, "version": settings.PROJECT_VERSION}

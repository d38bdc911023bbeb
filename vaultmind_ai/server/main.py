"""
Main Application Entry Point.

This module initializes the FastAPI application, configures middleware (CORS),
exception handlers and monitoring, and includes all API routers.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from vaultmind_ai.core.logging_config import get_logger, setup_logging
from vaultmind_ai.core.monitoring import initialize_logfire

from .api.v1 import approvals, conversations, health, history
from .core import constant
from .exception_handlers import setup_exception_handlers
from .services import assistant

# Initialize logging
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifespan events.

    Creates the transcript tables and the assistant service on startup, and
    disposes of the database engine on shutdown.
    """
    try:
        logger.info("Starting up VaultMind-AI Server...")
        await assistant.init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}", exc_info=True)
    assistant.get_assistant_service()

    yield

    logger.info("Shutting down VaultMind-AI Server...")
    await assistant.shutdown()


app = FastAPI(
    title=constant.PROJECT_NAME,
    description="""
    VaultMind-AI Server API

    Conversational assistant over a document vault. Responses stream as
    Server-Sent Events; document changes requested by the assistant wait for
    approval, and applied changes can be undone and redone.
    """,
    version="0.1.0",
    openapi_url=f"{constant.API_V1_STR}/openapi.json",
    docs_url=f"{constant.API_V1_STR}/docs",
    redoc_url=f"{constant.API_V1_STR}/redoc",
    lifespan=lifespan,
)

# Set all CORS enabled origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

setup_exception_handlers(app)
initialize_logfire(app)

app.include_router(health.router, tags=["health"])
app.include_router(conversations.router, prefix=f"{constant.API_V1_STR}/conversations", tags=["conversations"])
app.include_router(approvals.router, prefix=f"{constant.API_V1_STR}/conversations", tags=["approvals"])
app.include_router(history.router, prefix=f"{constant.API_V1_STR}/conversations", tags=["history"])

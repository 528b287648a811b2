"""Main FastAPI application."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from vea import __version__
from vea.api.dependencies import get_conversation_service
from vea.api.endpoints import router
from vea.utils.logging import get_logger, setup_logging

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info(f"VEA assistant {__version__} starting")
    yield
    if get_conversation_service.cache_info().currsize:
        await get_conversation_service().shutdown()
    logger.info("VEA assistant stopped")


# Create FastAPI application
app = FastAPI(
    title="VEA AI Assistant",
    description=(
        "Conversational business assistant: answers questions over business data through function calls "
        "and generates images and videos."
    ),
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
    tags_metadata=[
        {
            "name": "Conversation",
            "description": (
                "Send messages to the assistant and read session transcripts. "
                "The acting user is taken from the X-User-Id header."
            ),
        },
        {
            "name": "Health",
            "description": "Service health monitoring and status checks.",
        },
    ],
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("vea.main:app", host="0.0.0.0", port=8000, reload=True, log_level="info")

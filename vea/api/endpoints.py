"""API endpoints for the VEA assistant service."""

from datetime import UTC, datetime

from fastapi import APIRouter, Depends, HTTPException

from vea import __version__
from vea.api.dependencies import get_conversation_service, get_session_manager, get_user_id
from vea.errors import AssistantError
from vea.models.conversation import ConversationRequest, ConversationResponse, HealthResponse, TranscriptResponse
from vea.services.conversation import ConversationService
from vea.services.session_manager import InMemorySessionManager
from vea.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.post("/conversation", response_model=ConversationResponse, tags=["Conversation"])
async def handle_conversation(
    request: ConversationRequest,
    user_id: str = Depends(get_user_id),
    conversation_service: ConversationService = Depends(get_conversation_service),
    session_manager: InMemorySessionManager = Depends(get_session_manager),
) -> ConversationResponse:
    """Handle a conversation message and return the assistant reply.

    Video replies come back with ``is_generating=true``; poll the
    transcript endpoint to see progress.
    """
    if request.session_id:
        logger.info(f"Validating existing session: {request.session_id}")
        session = session_manager.get_session(request.session_id, user_id)
        if not session:
            logger.warning(f"Unknown session ID provided: {request.session_id}")
            raise HTTPException(status_code=404, detail=f"Session not found: {request.session_id}")
    else:
        logger.info(f"Creating new session for user {user_id}")
        session = session_manager.create_session(user_id)

    session_id = session.session_id

    try:
        logger.info(f"Processing message for session {session_id}: {request.message[:50]}...")
        reply = await conversation_service.process_message(session, request.message, request.reference_images)
        logger.info(f"Generated response for session {session_id}: {reply.content[:50]}...")
        return ConversationResponse(session_id=session_id, message=reply)
    except ValueError as e:
        logger.warning(f"Message validation error for session {session_id}: {e}")
        raise HTTPException(status_code=400, detail=str(e)) from e
    except AssistantError as e:
        logger.error(f"Conversation processing error for session {session_id}: {e}")
        reply = conversation_service.add_error_message(session, str(e))
        return ConversationResponse(session_id=session_id, message=reply)


@router.get("/conversation/{session_id}/messages", response_model=TranscriptResponse, tags=["Conversation"])
async def get_transcript(
    session_id: str,
    user_id: str = Depends(get_user_id),
    session_manager: InMemorySessionManager = Depends(get_session_manager),
) -> TranscriptResponse:
    """Return a session's transcript, including in-progress video messages."""
    session = session_manager.get_session(session_id, user_id)
    if not session:
        raise HTTPException(status_code=404, detail=f"Session not found: {session_id}")

    return TranscriptResponse(session_id=session_id, messages=session.messages)


@router.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(UTC),
        version=__version__,
    )

"""API routes for the message service."""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from pydantic import BaseModel, Field
import structlog

from hnn.common.context import RequestContext
from hnn.inference import (
    InferenceError,
    InferenceOrchestrator,
    InferenceTimeoutError,
    InvalidInputError,
    LifecycleError,
    MetadataNotFoundError,
    OrchestrationError,
)

logger = structlog.get_logger("message_service.api")

router = APIRouter()

# First match wins; subclasses must precede their bases.
ERROR_STATUS_CODES = [
    (InvalidInputError, 400),
    (MetadataNotFoundError, 404),
    (InferenceTimeoutError, 504),
    (LifecycleError, 502),
    (InferenceError, 502),
]


class ChatRequest(BaseModel):
    """Request model for the chat endpoint."""
    input1: List[int] = Field(..., description="Values for INPUT0")
    input2: List[int] = Field(..., description="Values for INPUT1")


class ChatResponse(BaseModel):
    """Response model for the chat endpoint."""
    results: List[str] = Field(..., description="Alternating sum and difference lines")


class MessageOut(BaseModel):
    """One stored message."""
    id: Optional[int] = Field(None, description="Message identifier")
    version_id: int = Field(..., description="Model version the message was run against")
    input1: List[int] = Field(..., description="Decoded INPUT0 values")
    input2: List[int] = Field(..., description="Decoded INPUT1 values")
    results: List[str] = Field(..., description="Formatted results")
    created_at: datetime = Field(..., description="Creation timestamp")


class MessagesResponse(BaseModel):
    """Response model for message history."""
    messages: List[MessageOut] = Field(..., description="Messages, oldest first")


class DeleteModelResponse(BaseModel):
    """Response model for model deletion."""
    success: bool = Field(..., description="Whether model metadata was removed")


def get_orchestrator(request: Request) -> InferenceOrchestrator:
    """Get orchestrator from application state."""
    return request.app.state.orchestrator


def get_request_context(
    request: Request,
    x_user_id: Optional[int] = Header(None),
) -> RequestContext:
    """Build the per-request context from headers and the configured deadline."""
    return RequestContext.new(
        request_id=getattr(request.state, "request_id", None),
        user_id=x_user_id,
        timeout=getattr(request.app.state, "request_timeout", None),
    )


def require_user(ctx: RequestContext = Depends(get_request_context)) -> RequestContext:
    """Reject requests that do not identify the caller."""
    if ctx.user_id is None:
        raise HTTPException(status_code=401, detail="X-User-ID header is required")
    return ctx


def to_http_error(error: OrchestrationError) -> HTTPException:
    """Translate an orchestration error into an HTTP error response."""
    status_code = 500
    for error_type, code in ERROR_STATUS_CODES:
        if isinstance(error, error_type):
            status_code = code
            break
    return HTTPException(
        status_code=status_code,
        detail={"error": error.code, "step": error.step, "message": error.message},
    )


@router.post("/chat/{model_id}/{version_id}", response_model=ChatResponse)
async def chat(
    model_id: int,
    version_id: int,
    body: ChatRequest,
    ctx: RequestContext = Depends(require_user),
    orchestrator: InferenceOrchestrator = Depends(get_orchestrator),
):
    """Run inference on two input vectors and store the message."""
    try:
        results = await orchestrator.process_message(
            ctx,
            user_id=ctx.user_id,
            model_id=model_id,
            version_id=version_id,
            input0=body.input1,
            input1=body.input2,
        )
    except OrchestrationError as e:
        raise to_http_error(e) from e

    return ChatResponse(results=results)


@router.get("/chat/{model_id}", response_model=MessagesResponse)
async def list_messages(
    model_id: int,
    ctx: RequestContext = Depends(require_user),
    orchestrator: InferenceOrchestrator = Depends(get_orchestrator),
):
    """Message history of the caller for one model."""
    try:
        views = await orchestrator.get_messages(ctx, ctx.user_id, model_id)
    except OrchestrationError as e:
        raise to_http_error(e) from e

    return MessagesResponse(
        messages=[
            MessageOut(
                id=view.id,
                version_id=view.version_id,
                input1=view.inputs[0],
                input2=view.inputs[1],
                results=view.results,
                created_at=view.created_at,
            )
            for view in views
        ]
    )


@router.delete("/models/{model_id}", response_model=DeleteModelResponse)
async def delete_model(
    model_id: int,
    ctx: RequestContext = Depends(get_request_context),
    orchestrator: InferenceOrchestrator = Depends(get_orchestrator),
):
    """Unload a model from the engine and delete its metadata and messages."""
    try:
        deleted = await orchestrator.delete_model(ctx, model_id)
    except OrchestrationError as e:
        raise to_http_error(e) from e

    logger.info("Model deletion handled", model_id=model_id, request_id=ctx.request_id, deleted=deleted)
    return DeleteModelResponse(success=deleted)

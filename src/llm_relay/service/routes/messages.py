"""Thread message routes."""

from fastapi import APIRouter, HTTPException
from fastapi.responses import StreamingResponse

from ...core.errors import ProviderConfigError
from ...models.turn import ConversationTurn
from ...shared.logging import RequestContext, generate_request_id, get_service_logger, set_request_id
from ..dependencies import get_service
from ..schemas import (
    CancelResponse,
    ConversationResponse,
    LoadConversationRequest,
    MessageRequest,
    TurnModel,
)

router = APIRouter()
log = get_service_logger(__name__)


def _start_request(method: str, path: str, thread_id: str) -> None:
    ctx = RequestContext(request_id=generate_request_id(), method=method, path=path, thread_id=thread_id)
    set_request_id(ctx.request_id)
    log.api_request(ctx)


@router.post("/v1/threads/{thread_id}/messages", tags=["Messages"])
async def send_message(thread_id: str, request: MessageRequest):
    """Send a user message and return (or stream) the assistant turn.

    Provider failures are not HTTP errors: the returned turn is marked
    ``cancelled`` and its content explains what went wrong.
    """
    _start_request("POST", f"/v1/threads/{thread_id}/messages", thread_id)
    service = get_service()

    if request.stream:
        try:
            service.controller.resolve_system_prompt(request.system_prompt)
            service.config.get_model(request.model)
        except (ValueError, ProviderConfigError) as e:
            raise HTTPException(status_code=400, detail=str(e))
        return StreamingResponse(
            service.send_message_stream(thread_id, request),
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
            },
        )

    try:
        turn = await service.send_message(thread_id, request)
    except (ValueError, ProviderConfigError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    return TurnModel.from_turn(turn)


@router.get("/v1/threads/{thread_id}/messages", response_model=ConversationResponse, tags=["Messages"])
async def get_conversation(thread_id: str):
    """Non-system turns of a thread, oldest first."""
    turns = await get_service().controller.get_conversation(thread_id)
    return ConversationResponse(thread_id=thread_id, messages=[TurnModel.from_turn(t) for t in turns])


@router.put("/v1/threads/{thread_id}/messages", response_model=ConversationResponse, tags=["Messages"])
async def load_conversation(thread_id: str, request: LoadConversationRequest):
    """Replace a thread's history."""
    turns = [ConversationTurn.from_dict(m.model_dump(exclude_none=True)) for m in request.messages]
    controller = get_service().controller
    await controller.load_conversation(thread_id, turns)
    stored = await controller.get_conversation(thread_id)
    return ConversationResponse(thread_id=thread_id, messages=[TurnModel.from_turn(t) for t in stored])


@router.delete("/v1/threads/{thread_id}/messages", tags=["Messages"])
async def clear_conversation(thread_id: str):
    await get_service().controller.clear_conversation(thread_id)
    return {"thread_id": thread_id, "cleared": True}


@router.post(
    "/v1/threads/{thread_id}/messages/{message_id}/cancel",
    response_model=CancelResponse,
    tags=["Messages"],
)
async def cancel_message(thread_id: str, message_id: str):
    """Stop an assistant turn that is still being generated."""
    controller = get_service().controller
    if await controller.store.get_message(thread_id, message_id) is None:
        raise HTTPException(status_code=404, detail=f"Message {message_id} not found in thread {thread_id}")
    cancelled = await controller.cancel_message(thread_id, message_id)
    return CancelResponse(thread_id=thread_id, message_id=message_id, cancelled=cancelled)

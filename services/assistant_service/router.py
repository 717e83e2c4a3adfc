from fastapi import APIRouter, Depends, Request

from shared.security import limiter

from .schemas import ChatRequest, ChatResponse
from .service import ChatService

router = APIRouter()

_chat_service: ChatService | None = None


def get_chat_service() -> ChatService:
    global _chat_service
    if _chat_service is None:
        _chat_service = ChatService()
    return _chat_service


@router.get("/health", include_in_schema=False)
async def health_check():
    return {"service": "assistant", "status": "running"}


@router.post("/chat", response_model=ChatResponse)
@limiter.limit("10/minute")  # per user when signed in, per IP otherwise
async def chat_endpoint(
    request: Request,  # slowapi reads the caller key from it
    payload: ChatRequest,
    chat_service: ChatService = Depends(get_chat_service),
):
    response, source = await chat_service.process_message(payload.message)
    return ChatResponse(response=response, source=source)

"""
FastAPI application for the bot service.

Endpoints:
- GET  /health  Liveness and configured backend
- POST /learn   Chunk, embed and store a document in a bot's namespace
- POST /chat    Answer a message with retrieved context and history
"""

import logging
import time
import uuid
from contextlib import asynccontextmanager
from functools import lru_cache

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from app.completion import CompletionClient
from app.config import Settings, get_settings
from app.services import (
    build_batcher,
    build_bot_settings,
    build_completion_client,
    build_learner,
    build_storage,
)
from context.packer import BudgetExceededError
from context.prompt import BotPrompt
from embeddings.batcher import EmbeddingBatcher, EmbeddingProviderError
from retrieval.vector_store import Storage, VectorStoreError
from shared.schemas import (
    ChatRequest,
    ChatResponse,
    ChatTurn,
    HealthResponse,
    LearnRequest,
    LearnResponse,
)
from shared.tokenizer import UnsupportedModelError

logger = logging.getLogger(__name__)

__version__ = "1.0.0"


@lru_cache()
def get_storage() -> Storage:
    return build_storage(get_settings())


@lru_cache()
def get_batcher() -> EmbeddingBatcher:
    return build_batcher(get_settings())


def get_completion_client(
    batcher: EmbeddingBatcher = Depends(get_batcher),
) -> CompletionClient:
    return build_completion_client(get_settings(), batcher=batcher)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logger.info(f"Starting bot service v{__version__} ({settings.VECTOR_BACKEND} backend)")

    yield

    logger.info("Shutting down bot service")


app = FastAPI(
    title="Bot Service",
    description="Retrieval-augmented chat with token-budgeted context",
    version=__version__,
    lifespan=lifespan,
)


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    """Add request ID for tracing."""
    request_id = str(uuid.uuid4())[:8]
    request.state.request_id = request_id

    start_time = time.time()
    response = await call_next(request)

    duration_ms = (time.time() - start_time) * 1000
    logger.info(
        f"[{request_id}] {request.method} {request.url.path} "
        f"- {response.status_code} - {duration_ms:.1f}ms"
    )

    response.headers["X-Request-ID"] = request_id
    return response


def _error(status_code: int, error: str, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, "detail": str(exc)})


@app.exception_handler(BudgetExceededError)
async def budget_exceeded_handler(request: Request, exc: BudgetExceededError):
    return _error(413, "Prompt exceeds token limit", exc)


@app.exception_handler(EmbeddingProviderError)
async def embedding_failure_handler(request: Request, exc: EmbeddingProviderError):
    logger.error(f"Embedding provider failure: {exc}")
    return _error(502, "Embedding provider unavailable", exc)


@app.exception_handler(VectorStoreError)
async def vector_store_failure_handler(request: Request, exc: VectorStoreError):
    logger.error(f"Vector store failure: {exc}")
    return _error(502, "Vector store unavailable", exc)


@app.exception_handler(UnsupportedModelError)
async def unsupported_model_handler(request: Request, exc: UnsupportedModelError):
    return _error(400, "Unsupported model", exc)


@app.get("/health", response_model=HealthResponse)
def health_check(settings: Settings = Depends(get_settings)):
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        version=__version__,
        vector_backend=settings.VECTOR_BACKEND,
    )


@app.post("/learn", response_model=LearnResponse)
def learn_endpoint(
    body: LearnRequest,
    settings: Settings = Depends(get_settings),
    storage: Storage = Depends(get_storage),
    batcher: EmbeddingBatcher = Depends(get_batcher),
):
    """Learn a document into a bot's namespace."""
    namespace = body.namespace or settings.DEFAULT_NAMESPACE
    learner = build_learner(namespace, settings=settings, storage=storage, batcher=batcher)

    stored = learner.learn(body.text, body.title, sentences=body.sentences)

    return LearnResponse(success=True, embeddings_stored=stored, stats=learner.get_stats())


@app.post("/chat", response_model=ChatResponse)
def chat_endpoint(
    body: ChatRequest,
    settings: Settings = Depends(get_settings),
    storage: Storage = Depends(get_storage),
    completion: CompletionClient = Depends(get_completion_client),
):
    """
    Answer one message.

    Flow:
    1. Render the prompt skeleton (instructions, history, query)
    2. Embed the query and retrieve matches from the namespace
    3. Pack as much context as fits the token limit
    4. Call the completion API
    """
    namespace = body.namespace or settings.DEFAULT_NAMESPACE
    bot_settings = build_bot_settings(
        namespace, settings, memory=storage if body.use_memory else None
    )

    prompt = BotPrompt(instructions=body.instructions, desired_format=body.desired_format)
    for turn in body.history:
        prompt.add_turn(turn.role, turn.content)
    prompt.body = body.query

    answer, tokens = completion.call(bot_settings, prompt)

    return ChatResponse(
        answer=answer,
        tokens=tokens,
        contexts=prompt.context_to_render,
        context_titles=prompt.context_titles,
        history=[ChatTurn(role=m.role, content=m.content) for m in prompt.history],
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)

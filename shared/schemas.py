"""
Pydantic schemas for API request/response models.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class ChatTurn(BaseModel):
    """One prior message in the conversation."""

    role: str = Field(..., description="user, assistant or system")
    content: str


class ChatRequest(BaseModel):
    """Request model for the chat endpoint."""

    query: str = Field(..., description="The user's message")
    namespace: Optional[str] = Field(
        default=None, description="Bot namespace to retrieve context from"
    )
    instructions: str = Field(default="", description="System instructions for the bot")
    desired_format: str = Field(default="", description="Output format to ask for")
    history: List[ChatTurn] = Field(default_factory=list)
    use_memory: bool = Field(default=True, description="Retrieve context from memory")


class ChatResponse(BaseModel):
    """Response model for the chat endpoint."""

    answer: str
    tokens: int
    contexts: List[str] = Field(default_factory=list)
    context_titles: List[str] = Field(default_factory=list)
    history: List[ChatTurn] = Field(default_factory=list)


class LearnRequest(BaseModel):
    """Request model for learning raw text."""

    text: str = Field(..., description="Document text")
    title: str = Field(..., description="Document title stored with each chunk")
    namespace: Optional[str] = Field(default=None, description="Bot namespace")
    sentences: bool = Field(default=True, description="Sentence-based chunking")


class LearnResponse(BaseModel):
    """Response model for learning."""

    success: bool
    embeddings_stored: int = 0
    stats: Dict[str, int] = Field(default_factory=dict)


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    vector_backend: str

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, computed_field


# --- Transcript ---
class Sender(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class Cost(BaseModel):
    total: float = Field(default=0.0, ge=0.0)


class TokenUsage(BaseModel):
    prompt_tokens: int = Field(default=0, ge=0)
    completion_tokens: int = Field(default=0, ge=0)

    @computed_field
    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens


class ChatMessage(BaseModel):
    id: str
    sender: Sender
    text: str = ""
    cost: Optional[Cost] = None
    tokens: Optional[TokenUsage] = None
    reasoning_note: Optional[str] = None
    correlation_id: Optional[str] = None
    is_error: bool = False

    def to_api_message(self) -> dict:
        """Shape used in the completion request history."""
        role = "user" if self.sender == Sender.USER else "assistant"
        return {"role": role, "content": self.text}


class GenerationStats(BaseModel):
    """Authoritative accounting for one generation."""
    cost: Cost
    tokens: TokenUsage
    reasoning_note: Optional[str] = None


# --- Models ---
class ModelPricing(BaseModel):
    prompt: float = 0.0
    completion: float = 0.0


class ModelInfo(BaseModel):
    id: str
    name: str = ""
    description: str = ""
    pricing: ModelPricing = Field(default_factory=ModelPricing)

    @property
    def provider(self) -> str:
        return self.id.split("/")[0]


class ModelListResponse(BaseModel):
    models: list[ModelInfo]
    providers: list[str]
    default_model: Optional[str] = None


# --- Chat ---
class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=50000)


class ModelSelection(BaseModel):
    model_id: str = ""
    provider: str = ""


class SystemPromptUpdate(BaseModel):
    system_prompt: str = ""


class ChatInfo(BaseModel):
    model: str = ""
    provider: str = ""


class SessionResponse(BaseModel):
    messages: list[ChatMessage]
    system_prompt: str = ""
    model_id: str = ""
    provider: str = ""
    chat_info: ChatInfo = Field(default_factory=ChatInfo)
    saved_chat_id: Optional[int] = None
    total_cost: float = 0.0
    is_loading: bool = False
    is_reconciling: bool = False


# --- Credentials ---
class CredentialUpdate(BaseModel):
    api_key: str = Field(..., min_length=1)


class CredentialStatus(BaseModel):
    has_api_key: bool = False


# --- Saved chats ---
class SaveChatRequest(BaseModel):
    name: str = ""


class SavedChatResponse(BaseModel):
    id: int
    name: str
    messages: list[ChatMessage] = []
    system_prompt: str = ""
    model: str = ""
    provider: str = ""
    total_cost: float = 0.0
    timestamp: int
    selected_model_id: str = ""
    selected_provider_id: str = ""


class SavedChatSummary(BaseModel):
    id: int
    name: str
    model: str = ""
    provider: str = ""
    total_cost: float = 0.0
    timestamp: int
    message_count: int = 0


class SavedChatListResponse(BaseModel):
    chats: list[SavedChatSummary]


# --- Health ---
class HealthResponse(BaseModel):
    status: str = "healthy"
    version: str = "0.1.0"
    saved_chat_count: int = 0
    session_busy: bool = False


# --- Cost ---
class CostSummaryResponse(BaseModel):
    total_cost_usd: float = 0.0
    total_prompt_tokens: int = 0
    total_completion_tokens: int = 0
    priced_messages: int = 0
    unpriced_messages: int = 0

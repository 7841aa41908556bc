"""State models for the RajAI app builder."""
import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


AgentName = Literal["UI/UX Agent", "Frontend Agent", "Backend Agent", "Testing Agent"]

AgentStatus = Literal["pending", "working", "complete", "error"]


class SessionPhase(str, Enum):
    """Lifecycle of the chat session."""
    IDLE = "idle"
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"


class StatusEvent(BaseModel):
    """Progress record for one crew agent, decoded from an [AGENT_UPDATE] line."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    agent_name: AgentName = Field(alias="agentName")
    status: AgentStatus
    message: str
    request_id: Optional[str] = Field(default=None, exclude=True)


class CodeFragment(BaseModel):
    """Opaque chunk of generated application source."""
    model_config = ConfigDict(frozen=True)

    text: str
    request_id: Optional[str] = Field(default=None, exclude=True)


class TerminalError(BaseModel):
    """The single failure that ends a generation."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["configuration", "transport", "credential_rejected"]
    message: str
    request_id: Optional[str] = None


class GenerationRequest(BaseModel):
    prompt: str
    request_id: str = Field(default_factory=lambda: uuid.uuid4().hex)


class ConversationMessage(BaseModel):
    """One chat bubble. Never mutated after creation."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    origin: Literal["user", "assistant"] = Field(alias="type")
    content: str
    created_at: datetime = Field(default_factory=datetime.now, alias="timestamp")

    @field_validator("origin", mode="before")
    @classmethod
    def _accept_ai_origin(cls, value: Any) -> Any:
        # Sessions saved by the browser app store assistant turns as "ai"
        return "assistant" if value == "ai" else value


class Project(BaseModel):
    """Completed generation kept in the bounded history."""
    id: str
    prompt: str
    timestamp: int


class SessionSnapshot(BaseModel):
    """The unit persisted and restored as a whole."""
    model_config = ConfigDict(populate_by_name=True)

    messages: List[ConversationMessage] = Field(default_factory=list)
    agent_progress: List[StatusEvent] = Field(default_factory=list, alias="agentProgress")
    preview_html: str = Field(default="", alias="previewHtml")
    current_prompt: str = Field(default="", alias="currentPrompt")


class GenerationState(BaseModel):
    """State passed through the generation graph nodes."""

    # Input
    request_id: str
    prompt: str

    # Processing
    progress_events: List[Dict[str, Any]] = Field(default_factory=list)
    validation_passed: bool = False

    # Generation
    status_events: int = 0
    code_fragments: int = 0
    generated_code: str = ""

    # Output
    error: Optional[str] = None
    error_kind: Optional[str] = None
    status: str = "processing"

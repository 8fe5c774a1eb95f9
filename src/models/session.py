"""Conversation and session snapshot models."""
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from .slide import Slide


class FileRef(BaseModel):
    """Metadata of a file attached to a user message."""
    
    name: str
    size: int = 0
    type: str = ""


class Message(BaseModel):
    """A message in the conversation."""
    
    sender: Literal["user", "ai"] = Field(description="Either 'user' or 'ai'")
    text: str = Field(description="The message text")
    attachments: list[FileRef] = Field(default_factory=list)


class Session(BaseModel):
    """
    Persisted snapshot of one conversation.
    
    The deck is stored under ``slides`` to match the history file layout.
    """
    
    id: str = Field(..., min_length=1, description="Stable session identifier")
    prompt: str = Field(..., min_length=1, description="First user prompt, used as title")
    slides: list[Slide] = Field(default_factory=list)
    messages: list[Message] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=datetime.now)
    
    @property
    def is_complete(self) -> bool:
        """A session can be persisted once it has messages and slides."""
        return bool(self.id and self.prompt and self.messages and self.slides)
    
    @property
    def persist_key(self) -> tuple[str, int, str, int]:
        """Tuple compared between saves to skip unchanged snapshots."""
        return (self.id, len(self.messages), self.prompt, len(self.slides))

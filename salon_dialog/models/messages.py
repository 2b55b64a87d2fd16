"""
Inbound / Outbound Message Models
=================================
Transport-neutral shapes for one inbound event and the single reply the
engine produces for it.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any, List

from loguru import logger
from pydantic import BaseModel, Field, field_validator, model_validator

QUICK_REPLY_CAP = 3
LIST_CAP = 10


class EventType(str, Enum):
    TEXT = "text"
    BUTTON_CLICK = "button_click"


class InboundEvent(BaseModel):
    """One inbound message: free text or a button selection, never both"""
    salon_id: str = Field(..., min_length=1)
    customer_id: str = Field(..., min_length=1, description="Customer messaging id (phone number)")
    message_id: Optional[str] = None
    text: Optional[str] = None
    button_id: Optional[str] = None
    button_title: Optional[str] = None
    timestamp: Optional[datetime] = None

    @field_validator("text")
    @classmethod
    def sanitize_text(cls, v):
        if v is None:
            return v
        sanitized = v.strip()[:4000]
        return sanitized or None

    @model_validator(mode="after")
    def exactly_one_payload(self):
        if bool(self.text) == bool(self.button_id):
            raise ValueError("Inbound event must carry exactly one of 'text' or 'button_id'")
        return self

    @property
    def event_type(self) -> EventType:
        return EventType.BUTTON_CLICK if self.button_id else EventType.TEXT

    @property
    def session_key(self) -> str:
        return f"{self.customer_id}:{self.salon_id}"


class OutboundKind(str, Enum):
    TEXT = "text"
    QUICK_REPLY = "quick_reply"
    LIST = "list"


@dataclass
class ChoiceOption:
    """A button / list row offered to the customer"""
    id: str
    title: str
    description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {"id": self.id, "title": self.title}
        if self.description:
            data["description"] = self.description
        return data


@dataclass
class OutboundMessage:
    """
    The one reply produced for an inbound event.

    `kind` follows the option count: none → text, up to 3 → quick replies,
    up to 10 → list. Longer option lists are truncated.
    """
    text: str
    message_key: str
    language: str
    options: List[ChoiceOption] = field(default_factory=list)
    kind: OutboundKind = OutboundKind.TEXT
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def build(
        cls,
        text: str,
        message_key: str,
        language: str,
        options: Optional[List[ChoiceOption]] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> "OutboundMessage":
        options = list(options or [])
        if len(options) > LIST_CAP:
            logger.warning(f"⚠️ {len(options)} options for {message_key} exceed list cap {LIST_CAP} - truncating")
            options = options[:LIST_CAP]

        if not options:
            kind = OutboundKind.TEXT
        elif len(options) <= QUICK_REPLY_CAP:
            kind = OutboundKind.QUICK_REPLY
        else:
            kind = OutboundKind.LIST

        return cls(
            text=text,
            message_key=message_key,
            language=language,
            options=options,
            kind=kind,
            metadata=metadata or {},
        )

    @property
    def option_ids(self) -> List[str]:
        return [option.id for option in self.options]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "text": self.text,
            "options": [option.to_dict() for option in self.options],
            "message_key": self.message_key,
            "language": self.language,
            "metadata": self.metadata,
        }

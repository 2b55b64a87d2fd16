"""
Data Models Package
===================
"""
from .conversation_context import (
    ConversationSession,
    ConversationState,
    OriginalIntent,
    ChoiceRecord,
    generate_session_id,
)
from .intent import Intent, IntentClassification, ClassificationStatus, LanguageDetection
from .messages import InboundEvent, EventType, OutboundMessage, OutboundKind, ChoiceOption
from .slots import CandidateSlot, RankedSlot, BookingRecord, PopularTimeBucket

__all__ = [
    "ConversationSession",
    "ConversationState",
    "OriginalIntent",
    "ChoiceRecord",
    "generate_session_id",
    "Intent",
    "IntentClassification",
    "ClassificationStatus",
    "LanguageDetection",
    "InboundEvent",
    "EventType",
    "OutboundMessage",
    "OutboundKind",
    "ChoiceOption",
    "CandidateSlot",
    "RankedSlot",
    "BookingRecord",
    "PopularTimeBucket",
]

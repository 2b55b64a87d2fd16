"""
Classification Result Models
============================
Outcomes of language detection and intent classification.

Low confidence is an expected outcome, not an error, so it is carried as a
status on the result rather than raised.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Dict, Any, List, Tuple


class Intent(str, Enum):
    BOOKING_REQUEST = "booking_request"
    SERVICE_INQUIRY = "service_inquiry"
    CANCELLATION = "cancellation"
    GREETING = "greeting"
    CONVERSATION = "conversation"

    @classmethod
    def parse(cls, value: Optional[str]) -> "Intent":
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.CONVERSATION


class ClassificationStatus(str, Enum):
    RELIABLE = "reliable"
    LOW_CONFIDENCE = "low_confidence"


@dataclass(frozen=True)
class LanguageDetection:
    language: str
    confidence: float
    method: str = "pattern"  # pattern, openai, default


@dataclass(frozen=True)
class IntentClassification:
    """
    Transient classifier outcome.

    Attributes:
        intent: Top intent label
        confidence: 0.0-1.0
        status: RELIABLE when confidence >= threshold
        alternatives: (intent, confidence) runners-up, best first
        entities: date (ISO), time (HH:MM), service, staff
    """
    intent: Intent
    confidence: float
    status: ClassificationStatus
    alternatives: Tuple[Tuple[Intent, float], ...] = ()
    entities: Dict[str, Any] = field(default_factory=dict)
    method: str = "rules"

    @property
    def is_reliable(self) -> bool:
        return self.status == ClassificationStatus.RELIABLE

    @classmethod
    def create(
        cls,
        intent: Intent,
        confidence: float,
        threshold: float,
        alternatives: Optional[List[Tuple[Intent, float]]] = None,
        entities: Optional[Dict[str, Any]] = None,
        method: str = "rules",
    ) -> "IntentClassification":
        confidence = max(0.0, min(1.0, float(confidence)))
        status = ClassificationStatus.RELIABLE if confidence >= threshold else ClassificationStatus.LOW_CONFIDENCE
        ordered = sorted(alternatives or [], key=lambda pair: pair[1], reverse=True)
        return cls(
            intent=intent,
            confidence=confidence,
            status=status,
            alternatives=tuple(ordered),
            entities=dict(entities or {}),
            method=method,
        )

"""
Intent Classifier
=================
Classifies a free-text customer message into the booking assistant's intent
taxonomy and extracts booking entities.

Keyword rules run first. When OpenAI is configured and the rules are not
confident, the model is asked for a JSON classification instead.
"""

import json
from datetime import date
from typing import Dict, List, Optional, Tuple

from loguru import logger

from ..config import Settings, get_settings
from ..models.intent import Intent, IntentClassification
from ..utils.date_parser import parse_date, parse_time
from ..utils.entity_extractor import extract_booking_entities


INTENT_KEYWORDS: Dict[Intent, Tuple[str, ...]] = {
    Intent.BOOKING_REQUEST: (
        "book", "appointment", "schedule", "reserve", "slot",
        "записат", "запиш", "запись", "забронир",
        "reservar", "cita", "turno",
        "agendar", "marcar", "agendamento",
        "לקבוע", "תור", "להזמין",
    ),
    Intent.SERVICE_INQUIRY: (
        "price", "cost", "how much", "services", "what do you offer",
        "сколько стоит", "цена", "стоимость", "услуг",
        "precio", "cuánto cuesta", "servicios",
        "preço", "quanto custa", "serviços",
        "מחיר", "כמה עולה", "שירותים",
    ),
    Intent.CANCELLATION: (
        "cancel", "отмен", "cancelar", "לבטל", "ביטול",
    ),
    Intent.GREETING: (
        "hello", "hi", "hey", "good morning",
        "привет", "здравствуй", "добрый день",
        "hola", "buenos días", "olá", "oi", "bom dia", "שלום",
    ),
}

SHORT_KEYWORDS = {"hi", "hey", "oi", "slot"}


class LLMIntentClassifier:
    """
    Intent classification with a rule-based core and an optional LLM pass.
    """

    INTENT_PROMPT = """You are the intent classifier of a beauty salon booking assistant on a messaging channel.

Classify the customer's message into ONE intent:
- booking_request: wants to book an appointment (service, day or time mentioned)
- service_inquiry: asks about services, prices or duration
- cancellation: wants to cancel an existing appointment
- greeting: greeting without a request
- conversation: anything else, small talk

Return ONLY a JSON object:
{
  "intent": "intent_name",
  "confidence": 0.0-1.0,
  "alternatives": [{"intent": "intent_name", "confidence": 0.0-1.0}],
  "entities": {"service": null, "date": "YYYY-MM-DD or null", "time": "HH:MM or null", "staff": null}
}

Today is {today}. Customer language: {language}.
Customer message: """

    def __init__(self, settings: Optional[Settings] = None, openai_client=None):
        self.settings = settings or get_settings()
        self.threshold = self.settings.intent_confidence_threshold
        self.client = openai_client
        self.model = self.settings.openai_model
        if self.client is None and self.settings.OPENAI_API_KEY:
            try:
                from openai import AsyncOpenAI
                self.client = AsyncOpenAI(api_key=self.settings.OPENAI_API_KEY)
                logger.info("✅ LLM Intent Classifier initialized")
            except Exception as e:
                logger.error(f"Failed to initialize Intent Classifier: {e}")
                self.client = None

    async def classify(self, message: str, language: str = "en", today: Optional[date] = None) -> IntentClassification:
        """
        Classify user intent.

        Args:
            message: Customer message
            language: Detected language code
            today: Reference date for relative dates

        Returns:
            IntentClassification (reliable or low-confidence)
        """
        rules_result = self.classify_with_rules(message, today)
        if rules_result.is_reliable or self.client is None:
            return rules_result

        try:
            llm_result = await self._classify_with_llm(message, language, today, rules_result.entities)
        except Exception as e:
            logger.error(f"Intent classification error: {e}")
            return rules_result

        logger.info(f"Intent classified by LLM: {llm_result.intent.value} (confidence: {llm_result.confidence:.2f})")
        return llm_result

    def classify_with_rules(self, message: str, today: Optional[date] = None) -> IntentClassification:
        """
        Keyword classification.

        Booking confidence grows with booking keywords and with the presence
        of a time, date or service in the message.
        """
        message_lower = message.lower()
        words = set(message_lower.replace(",", " ").replace("!", " ").replace("?", " ").split())
        entities = extract_booking_entities(message, today)

        hits: Dict[Intent, int] = {}
        for intent, keywords in INTENT_KEYWORDS.items():
            count = 0
            for keyword in keywords:
                if keyword in SHORT_KEYWORDS:
                    count += keyword in words
                else:
                    count += keyword in message_lower
            if count:
                hits[intent] = count

        scores: Dict[Intent, float] = {}
        for intent, count in hits.items():
            scores[intent] = 0.55 + 0.2 * count

        booking_signals = sum(1 for key in ("time", "date", "service") if key in entities)
        if Intent.BOOKING_REQUEST in scores:
            scores[Intent.BOOKING_REQUEST] += 0.1 * booking_signals
        elif "time" in entities and booking_signals >= 2:
            # "Haircut tomorrow at 3pm" is a booking request without saying "book"
            scores[Intent.BOOKING_REQUEST] = 0.45 + 0.1 * booking_signals

        if Intent.GREETING in scores and len(scores) > 1:
            # Greeting words in front of a real request do not make it small talk
            scores[Intent.GREETING] -= 0.3

        scores = {intent: min(0.95, score) for intent, score in scores.items()}

        if not scores:
            return IntentClassification.create(
                Intent.CONVERSATION, 0.5, self.threshold, entities=entities, method="rules"
            )

        ranked: List[Tuple[Intent, float]] = sorted(scores.items(), key=lambda pair: pair[1], reverse=True)
        best_intent, best_score = ranked[0]
        return IntentClassification.create(
            best_intent,
            best_score,
            self.threshold,
            alternatives=ranked[1:],
            entities=entities,
            method="rules",
        )

    async def _classify_with_llm(
        self,
        message: str,
        language: str,
        today: Optional[date],
        rule_entities: Dict,
    ) -> IntentClassification:
        today = today or date.today()
        prompt = self.INTENT_PROMPT.replace("{today}", today.isoformat()).replace("{language}", language)
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": "You are an intent classification expert."},
                {"role": "user", "content": prompt + f'"{message}"'},
            ],
            temperature=0.3,
            response_format={"type": "json_object"},
        )
        result = json.loads(response.choices[0].message.content)

        alternatives = []
        for alt in result.get("alternatives") or []:
            try:
                alternatives.append((Intent.parse(alt.get("intent")), float(alt.get("confidence", 0.0))))
            except (AttributeError, TypeError, ValueError):
                continue

        # Rule-extracted values are already normalized; the model only fills gaps
        entities = normalize_llm_entities(result.get("entities") or {}, today)
        entities.update(rule_entities)

        return IntentClassification.create(
            Intent.parse(result.get("intent")),
            float(result.get("confidence", 0.0)),
            self.threshold,
            alternatives=alternatives,
            entities=entities,
            method="openai",
        )


def normalize_llm_entities(raw: Dict, today: date) -> Dict[str, str]:
    """
    Coerce model-supplied entities to the rule formats (ISO date, HH:MM time).
    Values that do not parse are dropped.
    """
    entities = {}
    for key, value in raw.items():
        if not value or not isinstance(value, str):
            continue
        if key == "date":
            value = parse_date(value, today)
        elif key == "time":
            value = parse_time(value)
        if value:
            entities[key] = value
        else:
            logger.debug(f"Dropping unparseable {key} entity from model output: {raw[key]!r}")
    return entities


# Global instance
_classifier = None


def get_intent_classifier() -> LLMIntentClassifier:
    """Get or create global intent classifier"""
    global _classifier
    if _classifier is None:
        _classifier = LLMIntentClassifier()
    return _classifier

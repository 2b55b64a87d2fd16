"""Tests for language detection, intent classification and entity extraction."""

import json
from datetime import date
from types import SimpleNamespace

import pytest

from salon_dialog.core.intent_classifier import LLMIntentClassifier
from salon_dialog.models.intent import ClassificationStatus, Intent
from salon_dialog.utils.date_parser import parse_date, parse_time
from salon_dialog.utils.entity_extractor import extract_booking_entities
from salon_dialog.utils.language_detector import LanguageDetector, detect_language

TODAY = date(2026, 10, 21)  # Wednesday


class FakeCompletions:
    def __init__(self, payload=None, error=None):
        self.payload = payload
        self.error = error
        self.calls = 0

    async def create(self, **kwargs):
        self.calls += 1
        if self.error:
            raise self.error
        message = SimpleNamespace(content=json.dumps(self.payload))
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def fake_openai(completions):
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


class TestLanguageDetector:
    @pytest.mark.parametrize("text,language", [
        ("Хочу записаться на стрижку завтра в 15:00", "ru"),
        ("אני רוצה לקבוע תור למחר", "he"),
        ("Hola, quiero una cita para mañana", "es"),
        ("Olá, quero agendar um corte amanhã", "pt"),
        ("I want to book a haircut tomorrow", "en"),
    ])
    def test_pattern_detection(self, text, language):
        assert detect_language(text) == language

    def test_empty_text_uses_default(self):
        result = LanguageDetector.detect_by_pattern("  ", default_language="ru")
        assert (result.language, result.confidence, result.method) == ("ru", 0.0, "default")

    def test_unknown_latin_is_weak_english(self):
        result = LanguageDetector.detect_by_pattern("xyzzy plugh")
        assert result.language == "en"
        assert result.confidence == 0.5

    async def test_openai_fallback_for_weak_result(self, settings):
        completions = FakeCompletions({"language": "pt", "confidence": 0.9})
        detector = LanguageDetector(settings, openai_client=fake_openai(completions))
        result = await detector.detect("xyzzy plugh")
        assert result.language == "pt"
        assert result.method == "openai"

    async def test_unsupported_openai_answer_keeps_pattern(self, settings):
        completions = FakeCompletions({"language": "de", "confidence": 0.9})
        detector = LanguageDetector(settings, openai_client=fake_openai(completions))
        assert (await detector.detect("xyzzy plugh")).language == "en"

    async def test_confident_pattern_skips_openai(self, settings):
        completions = FakeCompletions({"language": "pt", "confidence": 0.9})
        detector = LanguageDetector(settings, openai_client=fake_openai(completions))
        assert (await detector.detect("Хочу записаться")).language == "ru"
        assert completions.calls == 0


class TestIntentRules:
    @pytest.fixture
    def classifier(self, settings):
        return LLMIntentClassifier(settings)

    def test_explicit_booking(self, classifier):
        result = classifier.classify_with_rules("I want to book a haircut tomorrow at 3pm", TODAY)
        assert result.intent == Intent.BOOKING_REQUEST
        assert result.is_reliable
        assert result.entities == {"service": "haircut", "date": "2026-10-22", "time": "15:00"}

    def test_implicit_booking(self, classifier):
        result = classifier.classify_with_rules("Haircut tomorrow at 3pm", TODAY)
        assert result.intent == Intent.BOOKING_REQUEST
        assert result.confidence == pytest.approx(0.75)
        assert result.status == ClassificationStatus.RELIABLE

    def test_spanish_booking(self, classifier):
        result = classifier.classify_with_rules("Quiero una cita el viernes a las 15", TODAY)
        assert result.intent == Intent.BOOKING_REQUEST
        assert result.entities["date"] == "2026-10-23"
        assert result.entities["time"] == "15:00"

    def test_service_inquiry(self, classifier):
        result = classifier.classify_with_rules("How much does a manicure cost?", TODAY)
        assert result.intent == Intent.SERVICE_INQUIRY
        assert result.is_reliable

    def test_greeting_before_request_loses(self, classifier):
        result = classifier.classify_with_rules("Hi, I'd like to book", TODAY)
        assert result.intent == Intent.BOOKING_REQUEST
        assert result.alternatives[0][0] == Intent.GREETING

    def test_small_talk_is_low_confidence(self, classifier):
        result = classifier.classify_with_rules("thanks, see you", TODAY)
        assert result.intent == Intent.CONVERSATION
        assert result.status == ClassificationStatus.LOW_CONFIDENCE


class TestIntentLLM:
    async def test_llm_used_when_rules_unsure(self, settings):
        completions = FakeCompletions({
            "intent": "booking_request",
            "confidence": 0.82,
            "alternatives": [{"intent": "conversation", "confidence": 0.1}],
            "entities": {"time": "16:00", "service": None},
        })
        classifier = LLMIntentClassifier(settings, openai_client=fake_openai(completions))
        result = await classifier.classify("could you squeeze me in later", "en", TODAY)

        assert result.intent == Intent.BOOKING_REQUEST
        assert result.method == "openai"
        assert result.entities == {"time": "16:00"}
        assert result.alternatives == ((Intent.CONVERSATION, 0.1),)

    async def test_llm_entities_normalized(self, settings):
        completions = FakeCompletions({
            "intent": "booking_request",
            "confidence": 0.8,
            "entities": {"date": "tomorrow", "time": "3pm", "service": "haircut"},
        })
        classifier = LLMIntentClassifier(settings, openai_client=fake_openai(completions))
        result = await classifier.classify("could you squeeze me in later", "en", TODAY)
        assert result.entities == {"date": "2026-10-22", "time": "15:00", "service": "haircut"}

    async def test_unparseable_llm_entities_dropped(self, settings):
        completions = FakeCompletions({
            "intent": "booking_request",
            "confidence": 0.8,
            "entities": {"date": "whenever", "time": "afternoon"},
        })
        classifier = LLMIntentClassifier(settings, openai_client=fake_openai(completions))
        result = await classifier.classify("could you squeeze me in later", "en", TODAY)
        assert result.entities == {}

    async def test_llm_failure_keeps_rules_result(self, settings):
        classifier = LLMIntentClassifier(settings, openai_client=fake_openai(FakeCompletions(error=RuntimeError("boom"))))
        result = await classifier.classify("thanks, see you", "en", TODAY)
        assert result.method == "rules"
        assert result.intent == Intent.CONVERSATION

    async def test_reliable_rules_skip_llm(self, settings):
        completions = FakeCompletions({"intent": "conversation", "confidence": 0.9})
        classifier = LLMIntentClassifier(settings, openai_client=fake_openai(completions))
        await classifier.classify("Book a haircut tomorrow at 3pm", "en", TODAY)
        assert completions.calls == 0


class TestDateTimeParsing:
    @pytest.mark.parametrize("text,expected", [
        ("tomorrow", "2026-10-22"),
        ("послезавтра", "2026-10-23"),
        ("pasado mañana", "2026-10-23"),
        ("hoje", "2026-10-21"),
        ("on Friday", "2026-10-23"),
        ("next wednesday", "2026-10-28"),
        ("в субботу", "2026-10-24"),
        ("2026-11-02", "2026-11-02"),
        ("05.11.2026", "2026-11-05"),
        ("03/01", "2027-01-03"),
    ])
    def test_parse_date(self, text, expected):
        assert parse_date(text, TODAY) == expected

    def test_no_date(self):
        assert parse_date("sometime", TODAY) is None

    @pytest.mark.parametrize("text,expected", [
        ("15:00", "15:00"),
        ("at 3pm", "15:00"),
        ("3:30 pm", "15:30"),
        ("12am", "00:00"),
        ("15h", "15:00"),
        ("15h30", "15:30"),
        ("в 15", "15:00"),
        ("a las 11", "11:00"),
        ("מחר בשעה 14", "14:00"),
    ])
    def test_parse_time(self, text, expected):
        assert parse_time(text) == expected

    def test_amanha_is_not_am(self):
        assert parse_time("9 amanhã") is None

    def test_entities_with_staff(self):
        entities = extract_booking_entities("Manicure with Olga on Friday at 10am", TODAY)
        assert entities == {"service": "manicure", "date": "2026-10-23", "time": "10:00", "staff": "Olga"}

"""
Customer Language Detection
===========================

Detects which of the supported customer languages (Russian, English,
Spanish, Portuguese, Hebrew) an inbound message is written in.

Detection is two-tier:
- Script and vocabulary analysis (fast, free, no network)
- Optional OpenAI fallback when the pattern result is not confident enough

The detector holds no per-customer state.
"""

import json
import re
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from loguru import logger

from ..config import Settings, get_settings
from ..models.intent import LanguageDetection

SUPPORTED_LANGUAGES: Tuple[str, ...] = ("ru", "en", "es", "pt", "he")


@dataclass
class LanguageMetrics:
    """
    Character distribution of a message.

    Attributes:
        cyrillic_char_count: Cyrillic letters
        hebrew_char_count: Hebrew letters
        latin_char_count: Latin letters (accented included)
        total_letters: All letters counted above
    """
    cyrillic_char_count: int
    hebrew_char_count: int
    latin_char_count: int
    total_letters: int


class LanguageDetector:
    """
    Script + vocabulary language detector for the five customer languages.

    Cyrillic and Hebrew are decided by script share. Latin text is split
    between Spanish, Portuguese and English by diacritics and common words.
    """

    CYRILLIC_PATTERN = re.compile(r'[Ѐ-ӿ]')
    HEBREW_PATTERN = re.compile(r'[֐-׿]')
    LATIN_PATTERN = re.compile(r'[a-zA-ZÀ-ÿ]')

    SPANISH_MARKERS = re.compile(r'[ñ¿¡]', re.IGNORECASE)
    PORTUGUESE_MARKERS = re.compile(r'[ãõç]', re.IGNORECASE)

    COMMON_WORDS: Dict[str, frozenset] = {
        "es": frozenset({
            "hola", "buenos", "días", "gracias", "por", "favor", "quiero", "cita",
            "salón", "manicura", "corte", "precio", "cuánto", "qué", "cuando",
            "mañana", "hoy", "para", "las", "el", "reservar",
        }),
        "pt": frozenset({
            "olá", "bom", "dia", "obrigado", "obrigada", "favor", "quero",
            "agendamento", "agendar", "salão", "corte", "preço", "quanto", "amanhã",
            "hoje", "para", "às", "marcar", "horário",
        }),
        "en": frozenset({
            "hello", "hi", "the", "is", "are", "and", "book", "appointment", "salon",
            "manicure", "haircut", "price", "cost", "how", "what", "when", "tomorrow",
            "today", "want", "please", "at", "for",
        }),
    }

    # Script share required to call Cyrillic / Hebrew
    SCRIPT_THRESHOLD = 0.3

    def __init__(self, settings: Optional[Settings] = None, openai_client=None):
        self.settings = settings or get_settings()
        self.client = openai_client
        if self.client is None and self.settings.OPENAI_API_KEY:
            try:
                from openai import AsyncOpenAI
                self.client = AsyncOpenAI(api_key=self.settings.OPENAI_API_KEY)
            except Exception as e:
                logger.error(f"Failed to initialize OpenAI language fallback: {e}")
                self.client = None

    @classmethod
    def analyze_text(cls, text: str) -> LanguageMetrics:
        if not text or not text.strip():
            return LanguageMetrics(0, 0, 0, 0)
        cyrillic = len(cls.CYRILLIC_PATTERN.findall(text))
        hebrew = len(cls.HEBREW_PATTERN.findall(text))
        latin = len(cls.LATIN_PATTERN.findall(text))
        return LanguageMetrics(cyrillic, hebrew, latin, cyrillic + hebrew + latin)

    @classmethod
    def detect_by_pattern(cls, text: str, default_language: str = "en") -> LanguageDetection:
        """
        Pure pattern detection.

        Example:
            >>> LanguageDetector.detect_by_pattern("Хочу записаться на стрижку").language
            'ru'
            >>> LanguageDetector.detect_by_pattern("Quero agendar um corte amanhã").language
            'pt'
        """
        metrics = cls.analyze_text(text)
        if metrics.total_letters == 0:
            return LanguageDetection(default_language, 0.0, "default")

        for language, count in (("he", metrics.hebrew_char_count), ("ru", metrics.cyrillic_char_count)):
            share = count / metrics.total_letters
            if share >= cls.SCRIPT_THRESHOLD:
                return LanguageDetection(language, round(min(1.0, 0.5 + share / 2), 2), "pattern")

        words = set(re.findall(r"[^\W\d_]+", text.lower()))
        scores = {lang: len(words & vocab) for lang, vocab in cls.COMMON_WORDS.items()}
        if cls.SPANISH_MARKERS.search(text):
            scores["es"] += 2
        if cls.PORTUGUESE_MARKERS.search(text):
            scores["pt"] += 2

        best = max(scores, key=lambda lang: (scores[lang], lang == "en"))
        hits = scores[best]
        if hits == 0:
            # Latin text with no known vocabulary: most likely English, weakly
            return LanguageDetection("en", 0.5, "pattern")

        runner_up = max(score for lang, score in scores.items() if lang != best)
        margin = (hits - runner_up) / hits
        confidence = round(min(0.99, 0.6 + 0.1 * hits) * (0.5 + margin / 2), 2)
        return LanguageDetection(best, confidence, "pattern")

    async def detect(self, text: str, min_confidence: float = 0.7) -> LanguageDetection:
        """
        Detect the message language.

        1. Pattern detection
        2. If confidence < min_confidence and OpenAI is configured, ask the model

        Unsupported model answers keep the pattern result.
        """
        result = self.detect_by_pattern(text, self.settings.default_language)
        if result.confidence >= min_confidence or self.client is None or result.method == "default":
            return result

        try:
            llm_result = await self._detect_with_openai(text)
        except Exception as e:
            logger.warning(f"OpenAI language detection failed, keeping pattern result: {e}")
            return result

        if llm_result and llm_result.language in SUPPORTED_LANGUAGES:
            return llm_result
        return result

    async def _detect_with_openai(self, text: str) -> Optional[LanguageDetection]:
        response = await self.client.chat.completions.create(
            model=self.settings.openai_model,
            messages=[
                {
                    "role": "system",
                    "content": (
                        "Detect the language of the user's message. Answer with JSON "
                        '{"language": "<ISO 639-1 code>", "confidence": <0..1>}. '
                        f"Prefer one of: {', '.join(SUPPORTED_LANGUAGES)}."
                    ),
                },
                {"role": "user", "content": text[:500]},
            ],
            temperature=0,
            response_format={"type": "json_object"},
        )
        data = json.loads(response.choices[0].message.content)
        language = str(data.get("language", "")).lower()[:2]
        return LanguageDetection(language, float(data.get("confidence", 0.0)), "openai")


def detect_language(text: str, default_language: str = "en") -> str:
    """
    Quick pattern-only language detection.

    Args:
        text: Input text to analyze

    Returns:
        One of ru, en, es, pt, he
    """
    return LanguageDetector.detect_by_pattern(text, default_language).language

"""Dialog components: templates, ranking, popular times, intent"""

from .templates import MessageKey, MessageTemplateStore, get_template_store
from .slot_ranker import AlternativeSlotRanker
from .popular_times import PopularTimesAnalyzer, default_buckets
from .intent_classifier import LLMIntentClassifier, get_intent_classifier

__all__ = [
    "MessageKey",
    "MessageTemplateStore",
    "get_template_store",
    "AlternativeSlotRanker",
    "PopularTimesAnalyzer",
    "default_buckets",
    "LLMIntentClassifier",
    "get_intent_classifier",
]

"""Utils module for helper functions"""

from .language_detector import LanguageDetector, detect_language
from .circuit_breaker import CircuitBreaker, CircuitBreakerOpenError, get_circuit_breaker
from .collaborator import call_collaborator

__all__ = [
    'LanguageDetector',
    'detect_language',
    'CircuitBreaker',
    'CircuitBreakerOpenError',
    'get_circuit_breaker',
    'call_collaborator',
]

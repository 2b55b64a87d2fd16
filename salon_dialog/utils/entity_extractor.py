"""
Booking Entity Extractor
========================
Pulls service, preferred staff, date and time out of a customer message.
Rule-based and language-agnostic across ru, en, es, pt and he.
"""
import re
from datetime import date
from typing import Any, Dict, Optional

from .date_parser import parse_date, parse_time

# Canonical service id -> stems that identify it in any supported language
SERVICE_KEYWORDS: Dict[str, tuple] = {
    "haircut": ("haircut", "hair cut", "trim", "стрижк", "подстри", "corte", "תספורת"),
    "manicure": ("manicure", "manicura", "маникюр", "unhas", "מניקור"),
    "pedicure": ("pedicure", "pedicura", "педикюр", "פדיקור"),
    "coloring": ("coloring", "colouring", "hair color", "dye", "окрашиван", "tinte", "coloração", "pintar", "צביעה"),
    "massage": ("massage", "массаж", "masaje", "massagem", "עיסוי"),
    "brows": ("brows", "eyebrow", "бров", "cejas", "sobrancelha", "גבות"),
}

STAFF_PATTERN = re.compile(
    r'(?:\bwith|\bк|\bу|\bcon|\bcom|\bעם)\s+([A-ZА-ЯЁÁÉÍÓÚÑÃÕÇ][\w\-]+|[א-ת][א-ת\-]+)',
    re.UNICODE,
)


def extract_service(text: str) -> Optional[str]:
    text_lower = text.lower()
    for service_id, stems in SERVICE_KEYWORDS.items():
        if any(stem in text_lower for stem in stems):
            return service_id
    return None


def extract_staff(text: str) -> Optional[str]:
    match = STAFF_PATTERN.search(text)
    return match.group(1) if match else None


def extract_booking_entities(text: str, today: Optional[date] = None) -> Dict[str, Any]:
    """
    Extract booking entities from a message.

    Returns only the keys that were found, e.g.
        {"service": "haircut", "date": "2026-10-23", "time": "15:00", "staff": "Anna"}
    """
    entities: Dict[str, Any] = {}

    service = extract_service(text)
    if service:
        entities["service"] = service

    requested_date = parse_date(text, today)
    if requested_date:
        entities["date"] = requested_date

    requested_time = parse_time(text)
    if requested_time:
        entities["time"] = requested_time

    staff = extract_staff(text)
    if staff:
        entities["staff"] = staff

    return entities

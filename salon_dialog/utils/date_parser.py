"""
Multilingual Date/Time Parser - Extract requested dates and times from
customer phrases in ru, en, es, pt and he
"""
from datetime import date, timedelta
from typing import Optional
import re

# Longer phrases first so "pasado mañana" wins over "mañana"
RELATIVE_DAYS = [
    (2, ["day after tomorrow", "послезавтра", "pasado mañana", "depois de amanhã", "מחרתיים"]),
    (1, ["tomorrow", "завтра", "mañana", "amanhã", "amanha", "מחר"]),
    (0, ["today", "сегодня", "hoy", "hoje", "היום"]),
]

# Python weekday numbers (Monday = 0)
WEEKDAYS = {
    0: ["monday", "понедельник", "lunes", "segunda", "יום שני"],
    1: ["tuesday", "вторник", "martes", "terça", "terca", "יום שלישי"],
    2: ["wednesday", "сред", "miércoles", "miercoles", "quarta", "יום רביעי"],
    3: ["thursday", "четверг", "jueves", "quinta", "יום חמישי"],
    4: ["friday", "пятниц", "viernes", "sexta", "יום שישי"],
    5: ["saturday", "суббот", "sábado", "sabado", "שבת"],
    6: ["sunday", "воскресень", "domingo", "יום ראשון"],
}

DATE_PATTERNS = [
    (re.compile(r'\b(\d{4})-(\d{1,2})-(\d{1,2})\b'), "ymd"),   # YYYY-MM-DD
    (re.compile(r'\b(\d{1,2})[./](\d{1,2})[./](\d{4})\b'), "dmy"),  # DD.MM.YYYY / DD/MM/YYYY
    (re.compile(r'\b(\d{1,2})[./](\d{1,2})\b(?![./:]\d)'), "dm"),  # DD.MM / DD/MM
]

TIME_HHMM = re.compile(r'\b([01]?\d|2[0-3])[:h]([0-5]\d)\s*(am|pm|a\.m\.|p\.m\.)?(?![a-zà-ÿ])', re.IGNORECASE)
TIME_AMPM = re.compile(r'\b(1[0-2]|0?[1-9])\s*(am|pm|a\.m\.|p\.m\.)(?![a-zà-ÿ])', re.IGNORECASE)
TIME_HOUR_SUFFIX = re.compile(r'\b([01]?\d|2[0-3])\s*(?:h|ч|hrs?)\b', re.IGNORECASE)
TIME_PREPOSITION = re.compile(
    r'(?:\bat|\bв|\ba las|\ba la|\bàs|ב-?|בשעה)\s*([01]?\d|2[0-3])\b(?![./:-]?\d)',
    re.IGNORECASE,
)


def parse_date(text: str, today: Optional[date] = None) -> Optional[str]:
    """
    Parse a date phrase and convert to YYYY-MM-DD format.

    Args:
        text: User message containing date phrase
        today: Reference date (defaults to today)

    Returns:
        Date in YYYY-MM-DD format or None if no date found
    """
    if today is None:
        today = date.today()

    text_lower = text.lower().strip()

    for pattern, order in DATE_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue
        groups = [int(g) for g in match.groups()]
        try:
            if order == "ymd":
                parsed = date(groups[0], groups[1], groups[2])
            elif order == "dmy":
                parsed = date(groups[2], groups[1], groups[0])
            else:
                parsed = date(today.year, groups[1], groups[0])
                if parsed < today:
                    parsed = date(today.year + 1, groups[1], groups[0])
        except ValueError:
            continue
        return parsed.isoformat()

    for offset, words in RELATIVE_DAYS:
        if any(word in text_lower for word in words):
            return (today + timedelta(days=offset)).isoformat()

    for day_num, names in WEEKDAYS.items():
        if any(name in text_lower for name in names):
            # Next occurrence of this weekday; same weekday means next week
            days_ahead = (day_num - today.weekday()) % 7
            if days_ahead == 0:
                days_ahead = 7
            return (today + timedelta(days=days_ahead)).isoformat()

    return None


def _to_24h(hour: int, suffix: Optional[str]) -> int:
    if not suffix:
        return hour
    suffix = suffix.lower().replace(".", "")
    if suffix == "pm" and hour < 12:
        return hour + 12
    if suffix == "am" and hour == 12:
        return 0
    return hour


def parse_time(text: str) -> Optional[str]:
    """
    Extract a clock time as HH:MM.

    Handles 15:00, 3pm, 3:30 pm, 15h, 15ч and "at 15" / "в 15" / "a las 15".
    """
    match = TIME_HHMM.search(text)
    if match:
        hour = _to_24h(int(match.group(1)), match.group(3))
        return f"{hour:02d}:{int(match.group(2)):02d}"

    match = TIME_AMPM.search(text)
    if match:
        hour = _to_24h(int(match.group(1)), match.group(2))
        return f"{hour:02d}:00"

    match = TIME_HOUR_SUFFIX.search(text)
    if match:
        return f"{int(match.group(1)):02d}:00"

    match = TIME_PREPOSITION.search(text)
    if match:
        return f"{int(match.group(1)):02d}:00"

    return None

"""
Message Template Store
======================
Every customer-facing sentence the assistant sends, in Russian, English,
Spanish, Portuguese and Hebrew, tagged with its emotional tone.

The table is built once at import time and exposed read-only; rendering is
pure lookup plus `{name}` interpolation.
"""
import re
from dataclasses import dataclass
from datetime import date
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

from loguru import logger

from ..config import get_settings
from ..exceptions import TemplateNotFoundError

GENERIC_PLACEHOLDER = "🙏"
DEFAULT_MAX_LINES = 3
PLACEHOLDER_PATTERN = re.compile(r"\{(\w+)\}")


class MessageKey:
    """Template keys"""
    SLOT_AVAILABLE = "SLOT_AVAILABLE"
    SLOT_TAKEN = "SLOT_TAKEN"
    ALL_DAY_BUSY = "ALL_DAY_BUSY"
    SAME_DAY_OPTIONS = "SAME_DAY_OPTIONS"
    DIFF_DAY_OPTIONS = "DIFF_DAY_OPTIONS"
    POPULAR_TIMES = "POPULAR_TIMES"
    MORE_OPTIONS = "MORE_OPTIONS"
    NO_ALTERNATIVES = "NO_ALTERNATIVES"
    SESSION_EXPIRED = "SESSION_EXPIRED"
    ERROR = "ERROR"
    GENERIC_CONVERSATION = "GENERIC_CONVERSATION"
    SERVICE_INQUIRY = "SERVICE_INQUIRY"
    ASK_DATE_TIME = "ASK_DATE_TIME"
    CONFIRM_SLOT = "CONFIRM_SLOT"
    BOOKING_CONFIRMED = "BOOKING_CONFIRMED"
    BOOKING_CANCELLED = "BOOKING_CANCELLED"
    CONTACT_SALON = "CONTACT_SALON"
    POPULAR_TIME_LINE = "POPULAR_TIME_LINE"
    POPULAR_TIME_DEFAULT_LINE = "POPULAR_TIME_DEFAULT_LINE"
    # Button labels
    LABEL_SAME_DAY_DIFF_TIME = "LABEL_SAME_DAY_DIFF_TIME"
    LABEL_DIFF_DAY_SAME_TIME = "LABEL_DIFF_DAY_SAME_TIME"
    LABEL_POPULAR_TIMES = "LABEL_POPULAR_TIMES"
    LABEL_SEE_MORE = "LABEL_SEE_MORE"
    LABEL_CONTACT_SALON = "LABEL_CONTACT_SALON"
    LABEL_CONFIRM = "LABEL_CONFIRM"
    LABEL_CANCEL = "LABEL_CANCEL"
    LABEL_SLOT = "LABEL_SLOT"
    LABEL_SLOT_STAFF = "LABEL_SLOT_STAFF"


class Tone:
    EMPATHETIC = "empathetic"
    CELEBRATORY = "celebratory"
    APOLOGETIC = "apologetic"
    INFORMATIVE = "informative"
    NEUTRAL = "neutral"


@dataclass(frozen=True)
class MessageTemplate:
    key: str
    language: str
    text: str
    tone: str = Tone.NEUTRAL
    max_lines: int = DEFAULT_MAX_LINES

    @property
    def line_count(self) -> int:
        return len([line for line in self.text.splitlines() if line.strip()])

    @property
    def placeholders(self) -> Tuple[str, ...]:
        return tuple(PLACEHOLDER_PATTERN.findall(self.text))


_K = MessageKey

# key -> (tone, {language: text})
_TEMPLATE_SOURCE: Dict[str, Tuple[str, Dict[str, str]]] = {
    _K.SLOT_AVAILABLE: (Tone.CELEBRATORY, {
        "ru": "Отлично! {day} в {time} свободно 🎉\nДоступные мастера: {staff}",
        "en": "Great! {day} at {time} is available 🎉\nAvailable masters: {staff}",
        "es": "¡Genial! {day} a las {time} está disponible 🎉\nMaestros disponibles: {staff}",
        "pt": "Ótimo! {day} às {time} está disponível 🎉\nProfissionais disponíveis: {staff}",
        "he": "מעולה! {day} בשעה {time} פנוי 🎉\nמומחים זמינים: {staff}",
    }),
    _K.SLOT_TAKEN: (Tone.EMPATHETIC, {
        "ru": "К сожалению, {time} в {day} уже занято 😔\nНо не переживайте, я нашёл отличные варианты 🎯\nЧто вам удобнее?",
        "en": "Unfortunately, {time} on {day} is already booked 😔\nBut don't worry, I found great options 🎯\nWhat works better for you?",
        "es": "Desafortunadamente, {time} el {day} ya está reservado 😔\n¡Pero no te preocupes, encontré excelentes opciones 🎯\n¿Qué te conviene más?",
        "pt": "Infelizmente, {time} na {day} já está reservado 😔\nMas não se preocupe, encontrei ótimas opções 🎯\nO que funciona melhor para você?",
        "he": "למרבה הצער, {time} ביום {day} כבר תפוס 😔\nאבל אל דאגה, מצאתי אפשרויות מעולות 🎯\nמה נוח לך יותר?",
    }),
    _K.ALL_DAY_BUSY: (Tone.EMPATHETIC, {
        "ru": "Ой! {day} полностью забронирован 📅\nМы очень популярны в этот день! 🎉\nНо у меня есть для вас варианты:",
        "en": "Oh! {day} is fully booked 📅\nWe're very popular that day! 🎉\nBut I have options for you:",
        "es": "¡Oh! {day} está completamente reservado 📅\n¡Somos muy populares ese día! 🎉\nPero tengo opciones para ti:",
        "pt": "Oh! {day} está totalmente reservado 📅\nSomos muito populares nesse dia! 🎉\nMas tenho opções para você:",
        "he": "אופס! {day} תפוס לגמרי 📅\nאנחנו מאוד פופולריים באותו יום! 🎉\nאבל יש לי אפשרויות עבורך:",
    }),
    _K.SAME_DAY_OPTIONS: (Tone.INFORMATIVE, {
        "ru": "Вот свободные слоты на {day} рядом с {time}:",
        "en": "Here are free slots on {day} near {time}:",
        "es": "Aquí están los horarios libres el {day} cerca de {time}:",
        "pt": "Aqui estão os horários livres na {day} perto de {time}:",
        "he": "הנה משבצות פנויות ביום {day} ליד {time}:",
    }),
    _K.DIFF_DAY_OPTIONS: (Tone.INFORMATIVE, {
        "ru": "Вот доступные дни с {time}:",
        "en": "Here are available days at {time}:",
        "es": "Aquí están los días disponibles a las {time}:",
        "pt": "Aqui estão os dias disponíveis às {time}:",
        "he": "הנה ימים זמינים בשעה {time}:",
    }),
    _K.POPULAR_TIMES: (Tone.INFORMATIVE, {
        "ru": "Вот популярные времена, когда обычно есть места ✨\n{popular}",
        "en": "Here are popular times when slots are usually available ✨\n{popular}",
        "es": "Aquí están los horarios populares cuando suele haber disponibilidad ✨\n{popular}",
        "pt": "Aqui estão os horários populares quando geralmente há disponibilidade ✨\n{popular}",
        "he": "הנה הזמנים הפופולריים שבהם בדרך כלל יש מקום ✨\n{popular}",
    }),
    _K.MORE_OPTIONS: (Tone.EMPATHETIC, {
        "ru": "Давайте поищем ещё 🔍\nКак вам удобнее?",
        "en": "Let's look for more options 🔍\nWhat would suit you?",
        "es": "Busquemos más opciones 🔍\n¿Qué te conviene?",
        "pt": "Vamos procurar mais opções 🔍\nO que fica melhor para você?",
        "he": "בוא נחפש עוד אפשרויות 🔍\nמה מתאים לך?",
    }),
    _K.NO_ALTERNATIVES: (Tone.APOLOGETIC, {
        "ru": "К сожалению, я не нашёл подходящих вариантов в ближайшее время 😔\nПопробуйте другую дату или свяжитесь с салоном напрямую 📞",
        "en": "Unfortunately, I couldn't find suitable options in the near future 😔\nTry a different date or contact the salon directly 📞",
        "es": "Desafortunadamente, no encontré opciones adecuadas en el futuro cercano 😔\nIntenta otra fecha o contacta al salón directamente 📞",
        "pt": "Infelizmente, não encontrei opções adequadas no futuro próximo 😔\nTente outra data ou entre em contato com o salão diretamente 📞",
        "he": "למרבה הצער, לא מצאתי אפשרויות מתאימות בזמן הקרוב 😔\nנסו תאריך אחר או צרו קשר עם הסלון ישירות 📞",
    }),
    _K.SESSION_EXPIRED: (Tone.APOLOGETIC, {
        "ru": "Ваша сессия истекла ⏰\nПожалуйста, напишите заново желаемую услугу и время.",
        "en": "Your session has expired ⏰\nPlease start over by typing your desired service and time.",
        "es": "Tu sesión ha expirado ⏰\nPor favor, escribe de nuevo el servicio y la hora deseados.",
        "pt": "Sua sessão expirou ⏰\nPor favor, digite novamente o serviço e o horário desejados.",
        "he": "הסשן שלך פג תוקף ⏰\nאנא כתבו שוב את השירות והשעה הרצויים.",
    }),
    _K.ERROR: (Tone.APOLOGETIC, {
        "ru": "Произошла ошибка при обработке вашего запроса 🙏\nПожалуйста, попробуйте ещё раз или свяжитесь с салоном.",
        "en": "An error occurred while processing your request 🙏\nPlease try again or contact the salon.",
        "es": "Se produjo un error al procesar tu solicitud 🙏\nPor favor, inténtalo de nuevo o contacta al salón.",
        "pt": "Ocorreu um erro ao processar sua solicitação 🙏\nPor favor, tente novamente ou entre em contato com o salão.",
        "he": "אירעה שגיאה בעיבוד הבקשה שלך 🙏\nאנא נסו שוב או צרו קשר עם הסלון.",
    }),
    _K.GENERIC_CONVERSATION: (Tone.NEUTRAL, {
        "ru": "Я помогу вам записаться 💬\nНапишите услугу, день и время, например: «Стрижка в пятницу в 15:00».",
        "en": "I can help you book an appointment 💬\nJust tell me the service, day and time, e.g. \"Haircut Friday 3pm\".",
        "es": "Puedo ayudarte a reservar una cita 💬\nDime el servicio, el día y la hora, p. ej. \"Corte el viernes a las 15:00\".",
        "pt": "Posso ajudar você a agendar 💬\nDiga o serviço, o dia e o horário, por exemplo \"Corte sexta às 15:00\".",
        "he": "אשמח לעזור לקבוע תור 💬\nכתבו שירות, יום ושעה, למשל \"תספורת יום שישי ב-15:00\".",
    }),
    _K.SERVICE_INQUIRY: (Tone.INFORMATIVE, {
        "ru": "С радостью расскажу об услугах 💇\nНапишите, какая услуга и когда, и я проверю свободное время.",
        "en": "Happy to help with our services 💇\nTell me which service and when, and I'll check availability.",
        "es": "Con gusto te ayudo con nuestros servicios 💇\nDime qué servicio y cuándo, y revisaré la disponibilidad.",
        "pt": "Fico feliz em ajudar com nossos serviços 💇\nDiga qual serviço e quando, e verifico a disponibilidade.",
        "he": "אשמח לעזור עם השירותים שלנו 💇\nכתבו איזה שירות ומתי, ואבדוק זמינות.",
    }),
    _K.ASK_DATE_TIME: (Tone.NEUTRAL, {
        "ru": "Конечно, подберём вам время 🗓️\nКакой день и время вам удобны?",
        "en": "Sure, let's find you a time 🗓️\nWhat day and time would suit you?",
        "es": "Claro, busquemos un horario para ti 🗓️\n¿Qué día y hora te vienen bien?",
        "pt": "Claro, vamos encontrar um horário para você 🗓️\nQual dia e horário ficam bons para você?",
        "he": "בטח, נמצא לך זמן 🗓️\nאיזה יום ושעה מתאימים לך?",
    }),
    _K.CONFIRM_SLOT: (Tone.NEUTRAL, {
        "ru": "{day} в {time}, мастер {staff}.\nПодтвердить запись?",
        "en": "{day} at {time} with {staff}.\nShall I confirm this booking?",
        "es": "{day} a las {time} con {staff}.\n¿Confirmo la reserva?",
        "pt": "{day} às {time} com {staff}.\nPosso confirmar o agendamento?",
        "he": "{day} בשעה {time} עם {staff}.\nלאשר את התור?",
    }),
    _K.BOOKING_CONFIRMED: (Tone.CELEBRATORY, {
        "ru": "Готово! Вы записаны на {day} в {time}, мастер {staff} 🎉\nДо встречи!",
        "en": "Done! You're booked for {day} at {time} with {staff} 🎉\nSee you soon!",
        "es": "¡Listo! Tienes cita el {day} a las {time} con {staff} 🎉\n¡Nos vemos pronto!",
        "pt": "Pronto! Você está agendado para {day} às {time} com {staff} 🎉\nAté breve!",
        "he": "בוצע! נקבע לך תור ליום {day} בשעה {time} עם {staff} 🎉\nנתראה בקרוב!",
    }),
    _K.BOOKING_CANCELLED: (Tone.NEUTRAL, {
        "ru": "Хорошо, ничего не бронирую 👌\nНапишите в любое время, чтобы выбрать другое время.",
        "en": "No problem, nothing was booked 👌\nMessage me any time to pick another time.",
        "es": "Sin problema, no se reservó nada 👌\nEscríbeme cuando quieras para elegir otra hora.",
        "pt": "Sem problema, nada foi agendado 👌\nMe escreva quando quiser para escolher outro horário.",
        "he": "אין בעיה, לא נקבע תור 👌\nכתבו לי בכל זמן כדי לבחור שעה אחרת.",
    }),
    _K.CONTACT_SALON: (Tone.EMPATHETIC, {
        "ru": "Давайте решим это напрямую 📞\nСвяжитесь с салоном: {contact}",
        "en": "Let's sort this out directly 📞\nPlease contact the salon: {contact}",
        "es": "Resolvámoslo directamente 📞\nContacta al salón: {contact}",
        "pt": "Vamos resolver isso diretamente 📞\nEntre em contato com o salão: {contact}",
        "he": "בואו נסדר את זה ישירות 📞\nצרו קשר עם הסלון: {contact}",
    }),
    _K.POPULAR_TIME_LINE: (Tone.INFORMATIVE, {
        "ru": "{day} {time} · броней: {count}",
        "en": "{day} {time} · {count} bookings",
        "es": "{day} {time} · {count} reservas",
        "pt": "{day} {time} · {count} agendamentos",
        "he": "{day} {time} · {count} הזמנות",
    }),
    _K.POPULAR_TIME_DEFAULT_LINE: (Tone.INFORMATIVE, {
        "ru": "{day} {time}",
        "en": "{day} {time}",
        "es": "{day} {time}",
        "pt": "{day} {time}",
        "he": "{day} {time}",
    }),
    _K.LABEL_SAME_DAY_DIFF_TIME: (Tone.NEUTRAL, {
        "ru": "✅ {day}, другое время",
        "en": "✅ {day}, other time",
        "es": "✅ {day}, otra hora",
        "pt": "✅ {day}, outro horário",
        "he": "✅ {day}, שעה אחרת",
    }),
    _K.LABEL_DIFF_DAY_SAME_TIME: (Tone.NEUTRAL, {
        "ru": "📅 Другой день в {time}",
        "en": "📅 Other day at {time}",
        "es": "📅 Otro día a las {time}",
        "pt": "📅 Outro dia às {time}",
        "he": "📅 יום אחר ב-{time}",
    }),
    _K.LABEL_POPULAR_TIMES: (Tone.NEUTRAL, {
        "ru": "✨ Популярное время",
        "en": "✨ Popular times",
        "es": "✨ Horarios populares",
        "pt": "✨ Horários populares",
        "he": "✨ זמנים פופולריים",
    }),
    _K.LABEL_SEE_MORE: (Tone.NEUTRAL, {
        "ru": "👀 Показать ещё",
        "en": "👀 Show more",
        "es": "👀 Mostrar más",
        "pt": "👀 Mostrar mais",
        "he": "👀 הצג עוד",
    }),
    _K.LABEL_CONTACT_SALON: (Tone.NEUTRAL, {
        "ru": "📞 Связаться с салоном",
        "en": "📞 Contact salon",
        "es": "📞 Contactar al salón",
        "pt": "📞 Falar com o salão",
        "he": "📞 צור קשר עם הסלון",
    }),
    _K.LABEL_CONFIRM: (Tone.NEUTRAL, {
        "ru": "✅ Подтвердить",
        "en": "✅ Confirm",
        "es": "✅ Confirmar",
        "pt": "✅ Confirmar",
        "he": "✅ אישור",
    }),
    _K.LABEL_CANCEL: (Tone.NEUTRAL, {
        "ru": "❌ Отмена",
        "en": "❌ Cancel",
        "es": "❌ Cancelar",
        "pt": "❌ Cancelar",
        "he": "❌ ביטול",
    }),
    _K.LABEL_SLOT: (Tone.NEUTRAL, {
        "ru": "{best}{day} {time}",
        "en": "{best}{day} {time}",
        "es": "{best}{day} {time}",
        "pt": "{best}{day} {time}",
        "he": "{best}{day} {time}",
    }),
    _K.LABEL_SLOT_STAFF: (Tone.NEUTRAL, {
        "ru": "мастер {staff}",
        "en": "with {staff}",
        "es": "con {staff}",
        "pt": "com {staff}",
        "he": "עם {staff}",
    }),
}

# Sunday-first, matching the 0 = Sunday day-of-week convention
WEEKDAY_NAMES: Mapping[str, Tuple[str, ...]] = MappingProxyType({
    "ru": ("воскресенье", "понедельник", "вторник", "среда", "четверг", "пятница", "суббота"),
    "en": ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"),
    "es": ("domingo", "lunes", "martes", "miércoles", "jueves", "viernes", "sábado"),
    "pt": ("domingo", "segunda-feira", "terça-feira", "quarta-feira", "quinta-feira", "sexta-feira", "sábado"),
    "he": ("ראשון", "שני", "שלישי", "רביעי", "חמישי", "שישי", "שבת"),
})


def _build_table(source: Dict[str, Tuple[str, Dict[str, str]]]) -> Mapping[Tuple[str, str], MessageTemplate]:
    table = {}
    for key, (tone, texts) in source.items():
        for language, text in texts.items():
            table[(key, language)] = MessageTemplate(key=key, language=language, text=text, tone=tone)
    return MappingProxyType(table)


TEMPLATES: Mapping[Tuple[str, str], MessageTemplate] = _build_table(_TEMPLATE_SOURCE)


def interpolate(text: str, params: Optional[Dict[str, Any]]) -> str:
    """Replace `{name}` with params[name]; unknown or None values stay verbatim"""
    if not params:
        return text

    def _sub(match):
        value = params.get(match.group(1))
        return match.group(0) if value is None else str(value)

    return PLACEHOLDER_PATTERN.sub(_sub, text)


class MessageTemplateStore:
    """
    Read-only template lookup with default-language fallback.

    Rendering never raises: a missing (key, language) falls back to the
    default language, and a key missing everywhere renders a generic
    placeholder after logging.
    """

    def __init__(
        self,
        templates: Optional[Mapping[Tuple[str, str], MessageTemplate]] = None,
        default_language: Optional[str] = None,
    ):
        self._templates = templates if templates is not None else TEMPLATES
        self.default_language = default_language or get_settings().default_language

    def get_template(self, key: str, language: str) -> MessageTemplate:
        """Resolve a template with fallback; raises TemplateNotFoundError"""
        template = self._templates.get((key, language))
        if template is not None:
            return template

        template = self._templates.get((key, self.default_language))
        if template is not None:
            logger.debug(f"Template {key} missing for '{language}' - using '{self.default_language}'")
            return template

        raise TemplateNotFoundError(f"No template for key '{key}' in '{language}' or '{self.default_language}'")

    def render(self, key: str, language: str, params: Optional[Dict[str, Any]] = None) -> str:
        """
        Render a template with parameter interpolation.

        Example:
            render("SLOT_TAKEN", "en", {"time": "15:00", "day": "Friday"})
            # => "Unfortunately, 15:00 on Friday is already booked 😔..."
        """
        try:
            template = self.get_template(key, language)
        except TemplateNotFoundError as e:
            logger.error(f"❌ {e}")
            return GENERIC_PLACEHOLDER
        return interpolate(template.text, params)

    def tone(self, key: str, language: str) -> Optional[str]:
        try:
            return self.get_template(key, language).tone
        except TemplateNotFoundError:
            return None

    def line_count_violations(self) -> List[MessageTemplate]:
        """Templates longer than their authored line budget"""
        return [t for t in self._templates.values() if t.line_count > t.max_lines]

    def weekday_name(self, day_of_week: int, language: str) -> str:
        names = WEEKDAY_NAMES.get(language) or WEEKDAY_NAMES[self.default_language]
        return names[day_of_week % 7]

    def format_day(self, value: date, language: str) -> str:
        """Localized weekday name plus day/month, e.g. 'Friday 23.10'"""
        return f"{self.weekday_name((value.weekday() + 1) % 7, language)} {value.strftime('%d.%m')}"


_store: Optional[MessageTemplateStore] = None


def get_template_store() -> MessageTemplateStore:
    global _store
    if _store is None:
        _store = MessageTemplateStore()
    return _store

"""
Message Router
==============
Turns one inbound event into exactly one outbound reply.

Flow:
    Button click  -> resolve session -> validate choice for current state
                  -> alternatives / see more / slot pick / confirm / cancel / contact
    Free text     -> language -> intent
                  -> generic reply (small talk, low confidence)
                  -> exact slot (terminal) or "unavailable" + choice buttons (new session)

Every collaborator call is bounded by a timeout. A failed call turns into a
localized apology and the session is left untouched.
"""
from datetime import date, timedelta
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from loguru import logger

from ..config import Settings, get_settings
from ..core.intent_classifier import LLMIntentClassifier
from ..core.popular_times import PopularTimesAnalyzer
from ..core.slot_ranker import AlternativeSlotRanker
from ..core.templates import MessageKey, MessageTemplateStore, get_template_store
from ..exceptions import CollaboratorError, InvalidChoiceError
from ..memory.session_manager import SessionContextStore, SessionKey
from ..models.conversation_context import ConversationSession, ConversationState, OriginalIntent
from ..models.intent import Intent
from ..models.messages import ChoiceOption, EventType, InboundEvent, OutboundMessage
from ..models.slots import CandidateSlot, parse_slot_id
from ..utils.collaborator import call_collaborator
from ..utils.language_detector import SUPPORTED_LANGUAGES, LanguageDetector


class Choice:
    """Button ids understood by the router (slot picks use the slot id)"""
    SAME_DAY_DIFF_TIME = "same_day_diff_time"
    DIFF_DAY_SAME_TIME = "diff_day_same_time"
    POPULAR_TIMES = "popular_times"
    SEE_MORE = "see_more"
    CONTACT_SALON = "contact_salon"
    CONFIRM = "confirm"
    CANCEL = "cancel"


ALTERNATIVE_CHOICES = (Choice.SAME_DAY_DIFF_TIME, Choice.DIFF_DAY_SAME_TIME, Choice.POPULAR_TIMES)

# Outcome of a button handler: reply plus what to do with the session
SAVE = "save"
DELETE = "delete"


class MessageRouter:
    """
    Dialog orchestrator.

    All collaborators are injectable; defaults are the process-wide instances.
    """

    def __init__(
        self,
        data_source,
        store: Optional[SessionContextStore] = None,
        detector: Optional[LanguageDetector] = None,
        classifier: Optional[LLMIntentClassifier] = None,
        ranker: Optional[AlternativeSlotRanker] = None,
        analyzer: Optional[PopularTimesAnalyzer] = None,
        templates: Optional[MessageTemplateStore] = None,
        settings: Optional[Settings] = None,
        today: Callable[[], date] = date.today,
    ):
        self.settings = settings or get_settings()
        self.data_source = data_source
        self.store = store or SessionContextStore(settings=self.settings)
        self.detector = detector or LanguageDetector(self.settings)
        self.classifier = classifier or LLMIntentClassifier(self.settings)
        self.ranker = ranker or AlternativeSlotRanker(self.settings)
        self.templates = templates or get_template_store()
        self.analyzer = analyzer or PopularTimesAnalyzer(data_source, self.settings, self.templates)
        self.today = today
        logger.info("✅ MessageRouter initialized")

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------
    async def handle(self, event: InboundEvent) -> OutboundMessage:
        """Produce the single reply for an inbound event. Never raises."""
        key = SessionKey(event.customer_id, event.salon_id)
        logger.info(f"🔵 [ROUTER] {event.event_type.value} from {event.session_key}")
        try:
            if event.event_type == EventType.BUTTON_CLICK:
                return await self._handle_button(event, key)
            return await self._handle_text(event, key)
        except Exception as exc:  # noqa: BLE001
            logger.exception(f"❌ [{event.session_key}] unhandled router error - replying {MessageKey.ERROR}: {exc}")
            return self._reply(MessageKey.ERROR, self.settings.default_language)

    # ------------------------------------------------------------------
    # Free text
    # ------------------------------------------------------------------
    async def _handle_text(self, event: InboundEvent, key: SessionKey) -> OutboundMessage:
        today = event.timestamp.date() if event.timestamp else self.today()
        language = self.settings.default_language

        try:
            detection = await call_collaborator("language_detector", self.detector.detect, event.text)
            if detection.language in SUPPORTED_LANGUAGES:
                language = detection.language
            classification = await call_collaborator(
                "intent_classifier", self.classifier.classify, event.text, language, today
            )
        except CollaboratorError as exc:
            self._log_failure(key, MessageKey.GENERIC_CONVERSATION, "classification", exc)
            return self._reply(MessageKey.GENERIC_CONVERSATION, language)

        logger.info(
            f"🎯 [{event.session_key}] lang={language} intent={classification.intent.value} "
            f"confidence={classification.confidence:.2f} ({classification.status.value})"
        )

        if not classification.is_reliable or classification.intent != Intent.BOOKING_REQUEST:
            if classification.is_reliable and classification.intent == Intent.SERVICE_INQUIRY:
                return self._reply(MessageKey.SERVICE_INQUIRY, language)
            return self._reply(MessageKey.GENERIC_CONVERSATION, language)

        entities = classification.entities
        if not entities.get("time"):
            return self._reply(MessageKey.ASK_DATE_TIME, language)

        intent = OriginalIntent(
            service=entities.get("service"),
            date=entities.get("date") or today.isoformat(),
            time=entities["time"],
            preferred_staff=entities.get("staff"),
            confidence=classification.confidence,
        )
        try:
            return await self._handle_booking_request(event, key, intent, language)
        except CollaboratorError as exc:
            self._log_failure(key, MessageKey.SLOT_TAKEN, "slot search", exc)
            return self._reply(MessageKey.ERROR, language)

    async def _handle_booking_request(
        self, event: InboundEvent, key: SessionKey, intent: OriginalIntent, language: str
    ) -> OutboundMessage:
        target_date = intent.requested_date
        target_time = intent.requested_time
        day_slots = await self._fetch_slots(event.salon_id, intent.service, target_date, target_date)

        exact = [slot for slot in day_slots if slot.time == target_time]
        if intent.preferred_staff:
            preferred = [s for s in exact if s.staff_id.casefold() == intent.preferred_staff.casefold()]
            exact = preferred or exact

        params = {"day": self.templates.format_day(target_date, language), "time": intent.time}

        if exact:
            staff = sorted({slot.staff_id for slot in exact})
            logger.info(f"✅ [{event.session_key}] exact slot {intent.date} {intent.time} available ({len(staff)} staff)")
            return self._reply(
                MessageKey.SLOT_AVAILABLE,
                language,
                {**params, "staff": ", ".join(staff)},
                metadata={"slots": [slot.to_dict() for slot in exact]},
            )

        all_day_busy = not day_slots
        message_key = MessageKey.ALL_DAY_BUSY if all_day_busy else MessageKey.SLOT_TAKEN

        session = ConversationSession.start(
            customer_id=event.customer_id,
            salon_id=event.salon_id,
            original_intent=intent,
            language=language,
            ttl_seconds=self.settings.session_ttl_seconds,
            absolute_ceiling_seconds=self.settings.session_absolute_ceiling_seconds,
            choice_log_cap=self.settings.session_choice_log_cap,
            now=self.store.clock(),
        )
        await self.store.save(key, session, self.settings.session_ttl_seconds)
        logger.info(f"🆕 [{event.session_key}] session {session.session_id} created ({message_key})")

        options = self._alternative_options(session, include_same_day=not all_day_busy)
        return self._reply(message_key, language, params, options, self._session_meta(session))

    # ------------------------------------------------------------------
    # Button clicks
    # ------------------------------------------------------------------
    async def _handle_button(self, event: InboundEvent, key: SessionKey) -> OutboundMessage:
        choice_id = event.button_id
        session = await self.store.get(key)
        if session is None:
            logger.info(f"⏰ [{event.session_key}] button '{choice_id}' without a live session")
            return self._reply(MessageKey.SESSION_EXPIRED, self.settings.default_language)

        language = session.language
        if choice_id not in self.valid_choices(session):
            exc = InvalidChoiceError(choice_id, session.state.value)
            logger.warning(f"⚠️ [{event.session_key}] {exc} - replying {MessageKey.SESSION_EXPIRED}")
            await self.store.delete(key)
            return self._reply(MessageKey.SESSION_EXPIRED, language)

        try:
            reply, outcome = await self._dispatch(session, choice_id)
        except CollaboratorError as exc:
            self._log_failure(key, self._message_key_for(choice_id), f"choice '{choice_id}'", exc)
            return self._reply(MessageKey.ERROR, language)

        if outcome == DELETE:
            await self.store.delete(key)
        else:
            await self.store.save(key, session)
            await self.store.extend(key)
        return reply

    def valid_choices(self, session: ConversationSession) -> Set[str]:
        """Button ids the customer may press in the session's current state"""
        if session.state == ConversationState.CHOICE_PRESENTED:
            return {*ALTERNATIVE_CHOICES, Choice.CONTACT_SALON}
        if session.state == ConversationState.SLOTS_SHOWN:
            valid = {slot.slot_id for slot in session.presented_slots} | {Choice.CONTACT_SALON}
            if session.see_more_offered:
                valid.add(Choice.SEE_MORE)
            return valid
        if session.state == ConversationState.CONFIRMING:
            return {Choice.CONFIRM, Choice.CANCEL}
        return set()

    async def _dispatch(self, session: ConversationSession, choice_id: str) -> Tuple[OutboundMessage, str]:
        if choice_id in ALTERNATIVE_CHOICES:
            return await self._show_alternatives(session, choice_id), SAVE
        if choice_id == Choice.SEE_MORE:
            return self._see_more(session), SAVE
        if choice_id == Choice.CONTACT_SALON:
            return await self._contact_salon(session), DELETE
        if choice_id == Choice.CONFIRM:
            return await self._confirm(session), DELETE
        if choice_id == Choice.CANCEL:
            return self._cancel(session), DELETE
        return self._select_slot(session, choice_id), SAVE

    async def _show_alternatives(self, session: ConversationSession, choice_id: str) -> OutboundMessage:
        intent = session.original_intent
        target_date = intent.requested_date
        target_time = intent.requested_time
        language = session.language
        search_days = self.settings.alternative_search_days
        params: Dict[str, Any] = {"day": self.templates.format_day(target_date, language), "time": intent.time}
        best: Set[str] = set()

        if choice_id == Choice.SAME_DAY_DIFF_TIME:
            candidates = await self._fetch_slots(session.salon_id, intent.service, target_date, target_date)
            ranked = self.ranker.rank(candidates, target_time, target_date, intent.preferred_staff)
            slots = [r.slot for r in ranked]
            best = {r.slot.slot_id for r in ranked if r.is_best_match}
            message_key = MessageKey.SAME_DAY_OPTIONS

        elif choice_id == Choice.DIFF_DAY_SAME_TIME:
            start = target_date + timedelta(days=1)
            candidates = await self._fetch_slots(
                session.salon_id, intent.service, start, target_date + timedelta(days=search_days)
            )
            same_time = [slot for slot in candidates if slot.time == target_time]
            ranked = self.ranker.rank(same_time, target_time, target_date, intent.preferred_staff)
            slots = [r.slot for r in ranked]
            message_key = MessageKey.DIFF_DAY_OPTIONS

        else:
            buckets = await call_collaborator(
                "popular_times", self.analyzer.analyze, session.salon_id, intent.service
            )
            candidates = await self._fetch_slots(
                session.salon_id, intent.service, target_date, target_date + timedelta(days=search_days)
            )
            slots = []
            for bucket in buckets:
                matching = [slot for slot in candidates if bucket.matches(slot)]
                slots.extend(sorted(matching, key=lambda s: (s.date, s.time, s.staff_id)))
            params["popular"] = self.analyzer.format_for_display(buckets, language)
            message_key = MessageKey.POPULAR_TIMES

        return self._present_results(session, choice_id, slots, best, message_key, params)

    def _present_results(
        self,
        session: ConversationSession,
        choice_id: str,
        slots: List[CandidateSlot],
        best: Set[str],
        message_key: str,
        params: Dict[str, Any],
    ) -> OutboundMessage:
        page_size = self.settings.max_results_per_page
        offset = session.page_offsets.get(choice_id, 0)
        page = slots[offset:offset + page_size]

        session.transition(ConversationState.SLOTS_SHOWN)
        session.last_choice_type = choice_id
        session.presented_slots = page
        session.see_more_offered = False
        session.record_choice(choice_id, result_shown=bool(page), now=self.store.clock())

        language = session.language
        if not page:
            logger.info(f"📭 No alternatives for {choice_id} (offset {offset}, {len(slots)} total)")
            options = [self._option(Choice.CONTACT_SALON, MessageKey.LABEL_CONTACT_SALON, language)]
            return self._reply(MessageKey.NO_ALTERNATIVES, language, None, options, self._session_meta(session))

        options = [self._slot_option(slot, slot.slot_id in best, language) for slot in page]
        cap_reached = session.see_more_count >= self.settings.max_see_more
        if len(slots) > offset + page_size and not cap_reached:
            session.see_more_offered = True
            options.append(self._option(Choice.SEE_MORE, MessageKey.LABEL_SEE_MORE, language))
        if cap_reached:
            options.append(self._option(Choice.CONTACT_SALON, MessageKey.LABEL_CONTACT_SALON, language))
        return self._reply(message_key, language, params, options, self._session_meta(session))

    def _see_more(self, session: ConversationSession) -> OutboundMessage:
        session.see_more_count += 1
        # Only the list the customer was paging through moves on
        choice_type = session.last_choice_type
        offset = session.page_offsets.get(choice_type, 0)
        session.page_offsets[choice_type] = offset + self.settings.max_results_per_page
        session.see_more_offered = False
        session.transition(ConversationState.CHOICE_PRESENTED)
        session.presented_slots = []
        session.record_choice(Choice.SEE_MORE, now=self.store.clock())
        logger.info(f"👀 see more #{session.see_more_count} in session {session.session_id}")

        options = self._alternative_options(session, include_same_day=True)
        if session.see_more_count >= self.settings.max_see_more:
            options.append(self._option(Choice.CONTACT_SALON, MessageKey.LABEL_CONTACT_SALON, session.language))
        return self._reply(MessageKey.MORE_OPTIONS, session.language, None, options, self._session_meta(session))

    def _select_slot(self, session: ConversationSession, slot_id: str) -> OutboundMessage:
        slot = session.find_presented_slot(slot_id)
        session.transition(ConversationState.CONFIRMING)
        session.selected_slot = slot
        session.record_choice(slot_id, now=self.store.clock())

        language = session.language
        options = [
            self._option(Choice.CONFIRM, MessageKey.LABEL_CONFIRM, language),
            self._option(Choice.CANCEL, MessageKey.LABEL_CANCEL, language),
        ]
        return self._reply(MessageKey.CONFIRM_SLOT, language, self._slot_params(slot, language), options,
                           self._session_meta(session))

    async def _confirm(self, session: ConversationSession) -> OutboundMessage:
        slot = session.selected_slot
        booking = await call_collaborator(
            "create_booking", self.data_source.create_booking, session.salon_id, session.customer_id, slot
        )
        session.transition(ConversationState.COMPLETED)
        self.analyzer.invalidate(session.salon_id)
        logger.info(f"🎉 Booking created for session {session.session_id}: {slot.slot_id}")
        return self._reply(
            MessageKey.BOOKING_CONFIRMED,
            session.language,
            self._slot_params(slot, session.language),
            metadata={"booking": booking, **self._session_meta(session)},
        )

    def _cancel(self, session: ConversationSession) -> OutboundMessage:
        session.transition(ConversationState.COMPLETED)
        return self._reply(MessageKey.BOOKING_CANCELLED, session.language, metadata=self._session_meta(session))

    async def _contact_salon(self, session: ConversationSession) -> OutboundMessage:
        contact = await call_collaborator("salon_contact", self.data_source.get_salon_contact, session.salon_id)
        session.transition(ConversationState.COMPLETED)
        logger.info(f"📞 Session {session.session_id} escalated to salon contact")
        return self._reply(
            MessageKey.CONTACT_SALON,
            session.language,
            {"contact": contact or "-"},
            metadata=self._session_meta(session),
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    async def _fetch_slots(
        self, salon_id: str, service_id: Optional[str], start: date, end: date
    ) -> List[CandidateSlot]:
        return await call_collaborator(
            "slot_search", self.data_source.get_available_slots, salon_id, service_id, start, end
        )

    def _reply(
        self,
        message_key: str,
        language: str,
        params: Optional[Dict[str, Any]] = None,
        options: Optional[List[ChoiceOption]] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> OutboundMessage:
        text = self.templates.render(message_key, language, params)
        return OutboundMessage.build(text, message_key, language, options, metadata)

    def _option(self, choice_id: str, label_key: str, language: str, params: Optional[Dict] = None) -> ChoiceOption:
        return ChoiceOption(id=choice_id, title=self.templates.render(label_key, language, params))

    def _alternative_options(self, session: ConversationSession, include_same_day: bool) -> List[ChoiceOption]:
        intent = session.original_intent
        language = session.language
        day = self.templates.weekday_name((intent.requested_date.weekday() + 1) % 7, language)
        options = []
        if include_same_day:
            options.append(self._option(Choice.SAME_DAY_DIFF_TIME, MessageKey.LABEL_SAME_DAY_DIFF_TIME, language,
                                        {"day": day}))
        options.append(self._option(Choice.DIFF_DAY_SAME_TIME, MessageKey.LABEL_DIFF_DAY_SAME_TIME, language,
                                    {"time": intent.time}))
        options.append(self._option(Choice.POPULAR_TIMES, MessageKey.LABEL_POPULAR_TIMES, language))
        return options

    def _slot_params(self, slot: CandidateSlot, language: str) -> Dict[str, Any]:
        return {
            "day": self.templates.format_day(slot.date, language),
            "time": slot.time.strftime("%H:%M"),
            "staff": slot.staff_id,
        }

    def _slot_option(self, slot: CandidateSlot, is_best: bool, language: str) -> ChoiceOption:
        params = self._slot_params(slot, language)
        return ChoiceOption(
            id=slot.slot_id,
            title=self.templates.render(MessageKey.LABEL_SLOT, language, {**params, "best": "⭐ " if is_best else ""}),
            description=self.templates.render(MessageKey.LABEL_SLOT_STAFF, language, params),
        )

    @staticmethod
    def _message_key_for(choice_id: str) -> str:
        return {
            Choice.SAME_DAY_DIFF_TIME: MessageKey.SAME_DAY_OPTIONS,
            Choice.DIFF_DAY_SAME_TIME: MessageKey.DIFF_DAY_OPTIONS,
            Choice.POPULAR_TIMES: MessageKey.POPULAR_TIMES,
            Choice.CONFIRM: MessageKey.BOOKING_CONFIRMED,
            Choice.CONTACT_SALON: MessageKey.CONTACT_SALON,
        }.get(choice_id, MessageKey.CONFIRM_SLOT if parse_slot_id(choice_id) else MessageKey.ERROR)

    @staticmethod
    def _session_meta(session: ConversationSession) -> Dict[str, Any]:
        return {"session_id": session.session_id, "state": session.state.value}

    @staticmethod
    def _log_failure(key: SessionKey, message_key: str, branch: str, exc: Exception) -> None:
        logger.error(
            f"❌ [{key.customer_id}:{key.salon_id}] {branch} failed - attempted {message_key}, "
            f"replying with apology: {exc}"
        )


_router: Optional[MessageRouter] = None


def get_message_router() -> MessageRouter:
    """Get or create the process-wide router wired to the HTTP data source"""
    global _router
    if _router is None:
        from ..api.booking_source import HttpBookingDataSource
        from ..memory.session_manager import get_session_store
        from ..core.intent_classifier import get_intent_classifier

        _router = MessageRouter(
            data_source=HttpBookingDataSource(),
            store=get_session_store(),
            classifier=get_intent_classifier(),
        )
    return _router

"""
Inbound Webhook Handler
=======================
HTTP entry point for the messaging transport.

The transport posts one normalized event per customer message (free text or
a button tap) and receives the reply payload to deliver. Delivery itself,
signature checks and retries belong to the transport.
"""
from fastapi import APIRouter, Request
from loguru import logger

from ..models.messages import InboundEvent

webhook = APIRouter()


def _router(request: Request):
    return request.app.state.message_router


@webhook.post("/webhook")
async def receive_event(event: InboundEvent, request: Request):
    """
    Handle one inbound event.

    Example body:
        {"salon_id": "s1", "customer_id": "+15550001", "text": "Haircut Friday 3pm"}
        {"salon_id": "s1", "customer_id": "+15550001", "button_id": "diff_day_same_time"}
    """
    logger.info(f"📱 Inbound {event.event_type.value} for salon {event.salon_id} (message_id={event.message_id})")
    reply = await _router(request).handle(event)
    return reply.to_dict()


@webhook.post("/salons/{salon_id}/bookings/created")
async def booking_created(salon_id: str, request: Request):
    """Booking backend notification: drop cached popular times for the salon"""
    dropped = _router(request).analyzer.invalidate(salon_id)
    return {"status": "ok", "salon_id": salon_id, "invalidated_entries": dropped}

"""
Booking Data Source - Availability, history and booking creation
=================================================================
The engine only talks to the booking backend through `BookingDataSource`.
`HttpBookingDataSource` is the production implementation over the salon
platform's REST API.

Calls are single-attempt: the router wraps each one in a bounded timeout,
so retries would only eat into the reply budget.
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional, Protocol

import httpx
from loguru import logger

from ..config import Settings, get_settings
from ..middleware.request_id import get_request_id
from ..models.slots import BookingRecord, CandidateSlot
from ..utils.circuit_breaker import get_circuit_breaker


class BookingDataSource(Protocol):
    async def get_available_slots(
        self, salon_id: str, service_id: Optional[str], start_date: date, end_date: date
    ) -> List[CandidateSlot]:
        ...

    async def get_booking_history(
        self, salon_id: str, since: datetime, service_id: Optional[str] = None
    ) -> List[BookingRecord]:
        ...

    async def create_booking(self, salon_id: str, customer_id: str, slot: CandidateSlot) -> Dict[str, Any]:
        ...

    async def get_salon_contact(self, salon_id: str) -> Optional[str]:
        ...


class HttpBookingDataSource:
    """
    REST client for the salon platform.

    Endpoints:
        GET  /salons/{id}/slots?service_id=&start_date=&end_date=
        GET  /salons/{id}/bookings/history?since=&service_id=
        POST /salons/{id}/bookings
        GET  /salons/{id}
    """

    def __init__(self, settings: Optional[Settings] = None, client: Optional[httpx.AsyncClient] = None):
        self.settings = settings or get_settings()
        self.base_url = self.settings.BOOKING_API_URL
        self._client = client
        logger.info(f"✅ HttpBookingDataSource initialized for {self.base_url}")

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.settings.collaborator_timeout_seconds * 2, connect=1.0),
                limits=httpx.Limits(max_keepalive_connections=10, max_connections=20),
            )
        return self._client

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json", "X-Request-ID": get_request_id()}
        token = self.settings.BOOKING_API_TOKEN
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        circuit_breaker = get_circuit_breaker("booking_api", failure_threshold=5, recovery_timeout=60)

        async def _make_request():
            response = await self._get_client().request(method, path, headers=self._headers(), **kwargs)
            response.raise_for_status()
            return response.json()

        try:
            return await circuit_breaker.call_async(_make_request)
        except httpx.HTTPStatusError as exc:
            logger.error(
                f"[REQ:{get_request_id()}] {method} {path} failed: "
                f"{exc.response.status_code} - {exc.response.text[:500]}"
            )
            raise
        except httpx.TransportError as exc:
            logger.error(f"🔴 BOOKING API UNREACHABLE: {method} {path} - {type(exc).__name__}: {exc}")
            raise

    async def get_available_slots(
        self, salon_id: str, service_id: Optional[str], start_date: date, end_date: date
    ) -> List[CandidateSlot]:
        """Free slots in [start_date, end_date], filtered by service when given"""
        params = {"start_date": start_date.isoformat(), "end_date": end_date.isoformat()}
        if service_id:
            params["service_id"] = service_id
        data = await self._request("GET", f"/salons/{salon_id}/slots", params=params)

        slots = []
        for raw in data.get("slots", []):
            try:
                slots.append(CandidateSlot.from_dict({"service_id": service_id or "", **raw}))
            except (KeyError, ValueError) as e:
                logger.warning(f"⚠️ Skipping malformed slot {raw}: {e}")
        return slots

    async def get_booking_history(
        self, salon_id: str, since: datetime, service_id: Optional[str] = None
    ) -> List[BookingRecord]:
        params = {"since": since.isoformat()}
        if service_id:
            params["service_id"] = service_id
        data = await self._request("GET", f"/salons/{salon_id}/bookings/history", params=params)

        records = []
        for raw in data.get("bookings", []):
            try:
                records.append(BookingRecord(
                    booking_id=str(raw["id"]),
                    starts_at=datetime.fromisoformat(raw["starts_at"]).replace(tzinfo=None),
                    service_id=raw.get("service_id"),
                    staff_id=raw.get("staff_id"),
                    status=raw.get("status", "confirmed"),
                ))
            except (KeyError, ValueError) as e:
                logger.warning(f"⚠️ Skipping malformed booking record: {e}")
        return records

    async def create_booking(self, salon_id: str, customer_id: str, slot: CandidateSlot) -> Dict[str, Any]:
        payload = {"customer_id": customer_id, **slot.to_dict()}
        logger.info(f"📝 Creating booking: salon={salon_id} {slot.slot_id}")
        return await self._request("POST", f"/salons/{salon_id}/bookings", json=payload)

    async def get_salon_contact(self, salon_id: str) -> Optional[str]:
        data = await self._request("GET", f"/salons/{salon_id}")
        return data.get("phone") or data.get("whatsapp") or data.get("email")

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

"""
Popular Times Analyzer

Aggregates a salon's recent booking history into the (weekday, hour) cells
customers book most, weighting recent bookings higher.

Results are cached per (salon, service) for an hour and dropped as soon as
a new booking for the salon is reported.
"""

import asyncio
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from loguru import logger

from ..config import Settings, get_settings
from ..models.slots import BookingRecord, PopularTimeBucket, day_of_week
from .templates import MessageKey, MessageTemplateStore, get_template_store

CacheKey = Tuple[str, Optional[str]]

# (day_of_week, hour) - Sunday = 0
DEFAULT_POPULAR_TIMES: Tuple[Tuple[int, int], ...] = (
    (5, 14),  # Friday 14:00
    (5, 15),  # Friday 15:00
    (6, 10),  # Saturday 10:00
    (6, 14),  # Saturday 14:00
    (4, 18),  # Thursday 18:00
)


def recency_weight(age_days: int) -> float:
    if age_days <= 30:
        return 2.0
    if age_days <= 60:
        return 1.5
    return 1.0


def default_buckets() -> List[PopularTimeBucket]:
    """Industry defaults for salons without enough history"""
    return [
        PopularTimeBucket(day_of_week=dow, hour=hour, confidence=0.0, is_default=True)
        for dow, hour in DEFAULT_POPULAR_TIMES
    ]


class PopularTimesAnalyzer:
    """
    Recency-weighted popular time buckets with a per-(salon, service) cache.

    Features:
    - 90-day history window, cancelled bookings ignored
    - Weights 2.0 / 1.5 / 1.0 for bookings up to 30 / 60 / 90 days old
    - Buckets below the significance count are dropped, top 5 returned
    - Industry defaults below the minimum history size
    """

    def __init__(
        self,
        data_source,
        settings: Optional[Settings] = None,
        templates: Optional[MessageTemplateStore] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.data_source = data_source
        self.settings = settings or get_settings()
        self.templates = templates or get_template_store()
        self.clock = clock
        self._cache: Dict[CacheKey, Tuple[datetime, List[PopularTimeBucket]]] = {}
        self._locks: Dict[CacheKey, asyncio.Lock] = {}
        # Bumped by invalidate(); a fetch that started under an older generation is not cached
        self._generations: Dict[str, int] = defaultdict(int)
        self._cache_duration = timedelta(seconds=self.settings.popular_times_cache_ttl_seconds)
        logger.info(f"🗄️ PopularTimesAnalyzer initialized ({self._cache_duration.total_seconds():.0f}s cache)")

    def _cached(self, key: CacheKey) -> Optional[List[PopularTimeBucket]]:
        entry = self._cache.get(key)
        if entry is None:
            return None
        fetched_at, buckets = entry
        if self.clock() - fetched_at > self._cache_duration:
            return None
        return buckets

    async def analyze(self, salon_id: str, service_id: Optional[str] = None) -> List[PopularTimeBucket]:
        """
        Popular buckets for a salon (optionally one service), best first.

        Data source failures propagate to the caller.
        """
        key = (salon_id, service_id)
        cached = self._cached(key)
        if cached is not None:
            logger.debug(f"✅ Using CACHED popular times for {key}")
            return list(cached)

        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            # Another task may have filled the cache while we waited
            cached = self._cached(key)
            if cached is not None:
                return list(cached)

            generation = self._generations[salon_id]
            now = self.clock()
            since = now - timedelta(days=self.settings.popular_times_lookback_days)
            logger.info(f"🔍 FETCHING booking history for popular times: salon={salon_id} service={service_id}")
            history = await self.data_source.get_booking_history(salon_id, since, service_id)

            buckets = self.compute(history, now)
            if self._generations[salon_id] == generation:
                self._cache[key] = (now, buckets)
            else:
                logger.info(f"⏭️ Salon {salon_id} invalidated during fetch - not caching popular times for {key}")
            return list(buckets)

    def compute(self, bookings: Iterable[BookingRecord], now: datetime) -> List[PopularTimeBucket]:
        """Pure aggregation over a booking history"""
        since = now - timedelta(days=self.settings.popular_times_lookback_days)
        in_window = [b for b in bookings if not b.is_cancelled and b.starts_at >= since]
        total = len(in_window)

        if total < self.settings.popular_times_min_total_bookings:
            logger.info(f"📊 Only {total} bookings in window - using default popular times")
            return default_buckets()

        counts: Dict[Tuple[int, int], int] = defaultdict(int)
        scores: Dict[Tuple[int, int], float] = defaultdict(float)
        for booking in in_window:
            cell = (day_of_week(booking.starts_at.date()), booking.starts_at.hour)
            age_days = max(0, (now - booking.starts_at).days)
            counts[cell] += 1
            scores[cell] += recency_weight(age_days)

        buckets = [
            PopularTimeBucket(
                day_of_week=cell[0],
                hour=cell[1],
                count=count,
                score=round(scores[cell], 2),
                is_significant=True,
                confidence=round(count / total, 3),
            )
            for cell, count in counts.items()
            if count >= self.settings.popular_times_min_count
        ]
        if not buckets:
            logger.info(f"📊 No time cell reaches {self.settings.popular_times_min_count} bookings - using defaults")
            return default_buckets()

        buckets.sort(key=lambda b: (-b.score, -b.count, b.day_of_week, b.hour))
        return buckets[: self.settings.popular_times_top_n]

    def invalidate(self, salon_id: str) -> int:
        """Drop every cached entry for the salon; returns how many were dropped"""
        self._generations[salon_id] += 1
        keys = [key for key in self._cache if key[0] == salon_id]
        for key in keys:
            del self._cache[key]
        if keys:
            logger.info(f"🗑️ Popular times cache invalidated for salon {salon_id} ({len(keys)} entries)")
        return len(keys)

    async def warm(self, salon_ids: Iterable[str]) -> int:
        """Pre-compute salon-wide buckets; returns the number of salons warmed"""
        warmed = 0
        for salon_id in salon_ids:
            try:
                await self.analyze(salon_id)
                warmed += 1
            except Exception as e:
                logger.error(f"❌ Failed to warm popular times for salon {salon_id}: {e}")
        return warmed

    def format_for_display(self, buckets: List[PopularTimeBucket], language: str) -> str:
        """One line per bucket, e.g. 'Friday 15:00 · 23 bookings'"""
        lines = []
        for bucket in buckets:
            key = MessageKey.POPULAR_TIME_DEFAULT_LINE if bucket.is_default else MessageKey.POPULAR_TIME_LINE
            lines.append(self.templates.render(key, language, {
                "day": self.templates.weekday_name(bucket.day_of_week, language),
                "time": f"{bucket.hour:02d}:00",
                "count": bucket.count,
            }))
        return "\n".join(lines)

    def get_cache_stats(self) -> Dict:
        now = self.clock()
        return {
            "cached_entries": len(self._cache),
            "fresh_entries": sum(1 for fetched_at, _ in self._cache.values() if now - fetched_at <= self._cache_duration),
            "cache_duration_seconds": self._cache_duration.total_seconds(),
        }

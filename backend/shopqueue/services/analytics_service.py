"""
Queue Analytics Service - summary, wait/service time, peak hour and
per-service statistics for one shop over a date range.

All four aggregates are computed together from a single store listing and
kept as one snapshot per shop in the analytics cache.
"""

import logging
import math
from collections import OrderedDict, defaultdict
from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Tuple, Union
from zoneinfo import ZoneInfo

from shopqueue.core.config import settings
from shopqueue.exceptions import QueueError, QueueErrorType, QueueValidationError
from shopqueue.models.queue_entry import QueueEntry, QueueStatus
from shopqueue.repositories.interface import QueueStore
from shopqueue.schemas.analytics import (
    AnalyticsSnapshot,
    DateRange,
    HourlyStat,
    QueueAnalyticsSummary,
    QueuePeakHoursAnalytics,
    QueueServiceAnalytics,
    QueueTimeAnalytics,
    ServiceRanking,
    ServiceStat,
    StaffingRecommendation,
)
from shopqueue.schemas.queue_entry import QueueFilters
from shopqueue.services.analytics_cache import AnalyticsCache
from shopqueue.utils.math_utils import average, median, minutes_between, percentage, round_half_up
from shopqueue.utils.status_utils import normalize_queue_status

logger = logging.getLogger(__name__)

HOURS_PER_DAY = 24
PEAK_HOUR_RATIO = 0.3
PEAK_HOUR_COUNT = math.ceil(HOURS_PER_DAY * PEAK_HOUR_RATIO)  # 8
SERVICE_RANKING_SIZE = 10

DateInput = Union[str, date, datetime]


# ==================== Per-entry helpers ====================

def wait_minutes(entry: QueueEntry) -> Optional[int]:
    if entry.actual_wait_time and entry.actual_wait_time > 0:
        return entry.actual_wait_time
    return None


def service_minutes(entry: QueueEntry) -> Optional[int]:
    """completed_at - called_at in whole minutes; non-positive durations are ignored."""
    minutes = minutes_between(entry.called_at, entry.completed_at)
    if minutes is None or minutes <= 0:
        return None
    return minutes


def _collect(entries: List[QueueEntry], fn) -> List[int]:
    return [v for v in (fn(e) for e in entries) if v is not None]


# ==================== Aggregates ====================

def build_summary(entries: List[QueueEntry]) -> QueueAnalyticsSummary:
    counts = defaultdict(int)
    for entry in entries:
        counts[normalize_queue_status(entry.status)] += 1

    total = len(entries)
    return QueueAnalyticsSummary(
        total_queues=total,
        waiting_queues=counts[QueueStatus.WAITING.value],
        confirmed_queues=counts[QueueStatus.CONFIRMED.value],
        serving_queues=counts[QueueStatus.SERVING.value],
        completed_queues=counts[QueueStatus.COMPLETED.value],
        cancelled_queues=counts[QueueStatus.CANCELLED.value],
        no_show_queues=counts[QueueStatus.NO_SHOW.value],
        average_wait_time=average(_collect(entries, wait_minutes)),
        average_service_time=average(_collect(entries, service_minutes)),
        completion_rate=percentage(counts[QueueStatus.COMPLETED.value], total),
        cancellation_rate=percentage(counts[QueueStatus.CANCELLED.value], total),
        no_show_rate=percentage(counts[QueueStatus.NO_SHOW.value], total),
    )


def build_time_analytics(entries: List[QueueEntry]) -> QueueTimeAnalytics:
    waits = _collect(entries, wait_minutes)
    services = _collect(entries, service_minutes)
    return QueueTimeAnalytics(
        average_wait_time=average(waits),
        median_wait_time=median(waits),
        min_wait_time=min(waits, default=0),
        max_wait_time=max(waits, default=0),
        average_service_time=average(services),
        median_service_time=median(services),
        min_service_time=min(services, default=0),
        max_service_time=max(services, default=0),
        total_service_time=sum(services),
    )


def recommend_staffing(stat: HourlyStat, average_count: float) -> StaffingRecommendation:
    """First matching rule wins."""
    count = stat.queue_count
    if count > 2 * average_count:
        employees, reason = max(2, math.ceil(count / 5)), "high volume"
    elif count > 1.5 * average_count:
        employees, reason = max(2, math.ceil(count / 8)), "above average"
    elif count < 0.3 * average_count:
        employees, reason = 1, "low volume"
    elif stat.average_wait_time > 30:
        employees, reason = max(2, math.ceil(stat.average_wait_time / 15)), "long wait"
    elif stat.completion_rate < 70:
        employees, reason = max(2, math.ceil((100 - stat.completion_rate) / 20)), "low completion"
    else:
        employees, reason = 1, "normal"
    return StaffingRecommendation(hour=stat.hour, recommended_employees=employees, reason=reason)


def build_peak_hours(entries: List[QueueEntry], tz: ZoneInfo) -> QueuePeakHoursAnalytics:
    buckets: Dict[int, List[QueueEntry]] = {hour: [] for hour in range(HOURS_PER_DAY)}
    for entry in entries:
        created = entry.created_at
        if created.tzinfo is None:
            created = created.replace(tzinfo=timezone.utc)
        buckets[created.astimezone(tz).hour].append(entry)

    hourly_stats = []
    for hour, bucket in buckets.items():
        completed = sum(1 for e in bucket if normalize_queue_status(e.status) == QueueStatus.COMPLETED.value)
        hourly_stats.append(HourlyStat(
            hour=hour,
            queue_count=len(bucket),
            average_wait_time=average(_collect(bucket, wait_minutes)),
            completion_rate=percentage(completed, len(bucket)),
        ))

    # sorted() is stable, so equal counts stay in hour order
    ranked = sorted(hourly_stats, key=lambda s: -s.queue_count)
    average_count = len(entries) / HOURS_PER_DAY

    return QueuePeakHoursAnalytics(
        hourly_stats=hourly_stats,
        peak_hours=ranked[:PEAK_HOUR_COUNT],
        quiet_hours=ranked[-PEAK_HOUR_COUNT:],
        recommended_staffing=[recommend_staffing(s, average_count) for s in hourly_stats],
    )


def popularity_score(completion_rate: float, revenue: float, total_count: int, average_wait_time: int) -> int:
    return round_half_up(
        0.4 * completion_rate
        + 0.3 * min(revenue / 1000, 100)
        + 0.2 * min(total_count / 10, 100)
        + 0.1 * max(0, 100 - average_wait_time)
    )


def build_service_analytics(entries: List[QueueEntry]) -> QueueServiceAnalytics:
    groups: "OrderedDict[str, Dict]" = OrderedDict()
    for entry in entries:
        for line in entry.service_lines or []:
            group = groups.setdefault(line.service_id, {
                "service_name": None,
                "entries": OrderedDict(),
                "revenue": Decimal("0"),
            })
            if not group["service_name"] and line.service_name:
                group["service_name"] = line.service_name
            group["entries"][entry.id] = entry
            group["revenue"] += Decimal(str(line.unit_price or 0)) * (line.quantity or 0)

    service_stats = []
    for service_id, group in groups.items():
        members = list(group["entries"].values())
        total = len(members)
        completed = sum(1 for e in members if normalize_queue_status(e.status) == QueueStatus.COMPLETED.value)
        avg_wait = average(_collect(members, wait_minutes))
        revenue = float(round(group["revenue"], 2))
        service_stats.append(ServiceStat(
            service_id=service_id,
            service_name=group["service_name"] or service_id,
            total_count=total,
            completed_count=completed,
            average_wait_time=avg_wait,
            average_service_time=average(_collect(members, service_minutes)),
            revenue=revenue,
            popularity_score=popularity_score(completed / total * 100, revenue, total, avg_wait),
        ))

    def ranking(stats: List[ServiceStat]) -> List[ServiceRanking]:
        return [
            ServiceRanking(
                service_id=s.service_id,
                service_name=s.service_name,
                queue_count=s.total_count,
                revenue=s.revenue,
            )
            for s in stats[:SERVICE_RANKING_SIZE]
        ]

    return QueueServiceAnalytics(
        service_stats=service_stats,
        top_services=ranking(sorted(service_stats, key=lambda s: -s.total_count)),
        least_popular_services=ranking(sorted(service_stats, key=lambda s: s.total_count)),
    )


# ==================== Service ====================

class QueueAnalyticsService:
    def __init__(
        self,
        store: QueueStore,
        cache: AnalyticsCache,
        clock: Optional[Callable[[], datetime]] = None,
        ttl_seconds: Optional[int] = None,
        tz_name: Optional[str] = None,
    ):
        self.store = store
        self.cache = cache
        self.clock = clock or datetime.utcnow
        self.ttl_seconds = ttl_seconds or settings.ANALYTICS_CACHE_TTL_SECONDS
        self.tz = ZoneInfo(tz_name or settings.ANALYTICS_TIMEZONE)

    @staticmethod
    def _range_key(value: DateInput) -> str:
        if isinstance(value, (date, datetime)):
            return value.isoformat()
        return str(value).strip()

    def _parse_bound(self, value: str, end_of_day: bool) -> datetime:
        """
        Parses an ISO-8601 date or datetime into naive UTC.
        Naive inputs are read in the analytics timezone; a bare date_to covers its whole day.
        """
        try:
            if len(value) == 10:
                day = date.fromisoformat(value)
                parsed = datetime.combine(day, time.max if end_of_day else time.min)
            else:
                parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            raise QueueValidationError(
                f"Invalid date: {value!r}. Expected an ISO-8601 date or datetime.",
                operation="getQueueAnalytics",
                context={"value": value},
            )
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=self.tz)
        return parsed.astimezone(timezone.utc).replace(tzinfo=None)

    def _validate(self, shop_id: str, date_from: str, date_to: str) -> Tuple[datetime, datetime]:
        context = {"shop_id": shop_id, "date_from": date_from, "date_to": date_to}
        if not shop_id:
            raise QueueValidationError("Shop ID is required.", operation="getQueueAnalytics", context=context)
        if not date_from or not date_to:
            raise QueueValidationError(
                "Both date_from and date_to are required.",
                operation="getQueueAnalytics",
                context=context,
            )

        start = self._parse_bound(date_from, end_of_day=False)
        end = self._parse_bound(date_to, end_of_day=True)
        if start > end:
            raise QueueValidationError(
                "date_from must not be after date_to.",
                operation="getQueueAnalytics",
                context=context,
            )
        return start, end

    async def _cached_snapshot(self, shop_id: str) -> Optional[AnalyticsSnapshot]:
        try:
            return await self.cache.get(shop_id)
        except Exception as e:
            logger.warning(f"Analytics cache read failed for shop {shop_id}: {e}")
            return None

    async def _store_snapshot(self, shop_id: str, snapshot: AnalyticsSnapshot) -> None:
        try:
            await self.cache.put(shop_id, snapshot, self.ttl_seconds)
        except Exception as e:
            logger.warning(f"Analytics cache write failed for shop {shop_id}: {e}")

    async def get_snapshot(
        self,
        shop_id: str,
        date_from: DateInput,
        date_to: DateInput,
        employee_id: Optional[str] = None,
        service_id: Optional[str] = None,
    ) -> AnalyticsSnapshot:
        """
        Returns the shop's snapshot for the requested range and scope.
        A cached snapshot is reused only while fresh and for the exact same range and scope.
        """
        date_from = self._range_key(date_from) if date_from else ""
        date_to = self._range_key(date_to) if date_to else ""
        start, end = self._validate(shop_id, date_from, date_to)

        try:
            now = self.clock()
            cached = await self._cached_snapshot(shop_id)
            if (
                cached is not None
                and cached.matches(date_from, date_to, employee_id, service_id)
                and cached.age_seconds(now) < self.ttl_seconds
            ):
                logger.debug(f"Analytics cache hit for shop {shop_id}")
                return cached

            logger.info(f"Computing queue analytics for shop {shop_id} ({date_from} .. {date_to})")
            entries = await self.store.list_all(QueueFilters(
                shop_id=shop_id,
                date_from=start,
                date_to=end,
                employee_id=employee_id,
                service_id=service_id,
            ))

            snapshot = AnalyticsSnapshot(
                shop_id=shop_id,
                date_range=DateRange(date_from=date_from, date_to=date_to),
                employee_id=employee_id,
                service_id=service_id,
                computed_at=now,
                ttl_seconds=self.ttl_seconds,
                summary=build_summary(entries),
                time=build_time_analytics(entries),
                peak_hours=build_peak_hours(entries, self.tz),
                services=build_service_analytics(entries),
            )
            await self._store_snapshot(shop_id, snapshot)
            logger.info(f"Queue analytics for shop {shop_id} computed over {len(entries)} entries")
            return snapshot
        except QueueError:
            raise
        except Exception as e:
            logger.error(f"Failed to compute analytics for shop {shop_id}: {e}", exc_info=True)
            raise QueueError(
                QueueErrorType.OPERATION_FAILED,
                f"Failed to compute queue analytics: {e}",
                operation="getQueueAnalytics",
                context={"shop_id": shop_id, "date_from": date_from, "date_to": date_to},
                cause=e,
            ) from e

    async def get_summary(self, shop_id: str, date_from: DateInput, date_to: DateInput,
                          employee_id: Optional[str] = None,
                          service_id: Optional[str] = None) -> QueueAnalyticsSummary:
        return (await self.get_snapshot(shop_id, date_from, date_to, employee_id, service_id)).summary

    async def get_time_analytics(self, shop_id: str, date_from: DateInput, date_to: DateInput,
                                 employee_id: Optional[str] = None,
                                 service_id: Optional[str] = None) -> QueueTimeAnalytics:
        return (await self.get_snapshot(shop_id, date_from, date_to, employee_id, service_id)).time

    async def get_peak_hours(self, shop_id: str, date_from: DateInput, date_to: DateInput,
                             employee_id: Optional[str] = None,
                             service_id: Optional[str] = None) -> QueuePeakHoursAnalytics:
        return (await self.get_snapshot(shop_id, date_from, date_to, employee_id, service_id)).peak_hours

    async def get_service_analytics(self, shop_id: str, date_from: DateInput, date_to: DateInput,
                                    employee_id: Optional[str] = None,
                                    service_id: Optional[str] = None) -> QueueServiceAnalytics:
        return (await self.get_snapshot(shop_id, date_from, date_to, employee_id, service_id)).services

    async def invalidate(self, shop_id: str) -> None:
        try:
            await self.cache.invalidate(shop_id)
        except Exception as e:
            logger.warning(f"Analytics cache invalidation failed for shop {shop_id}: {e}")

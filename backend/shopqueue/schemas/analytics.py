from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class DateRange(BaseModel):
    date_from: str
    date_to: str


class QueueAnalyticsSummary(BaseModel):
    total_queues: int = 0
    waiting_queues: int = 0
    confirmed_queues: int = 0
    serving_queues: int = 0
    completed_queues: int = 0
    cancelled_queues: int = 0
    no_show_queues: int = 0
    average_wait_time: int = 0
    average_service_time: int = 0
    completion_rate: int = 0
    cancellation_rate: int = 0
    no_show_rate: int = 0


class QueueTimeAnalytics(BaseModel):
    average_wait_time: int = 0
    median_wait_time: int = 0
    min_wait_time: int = 0
    max_wait_time: int = 0
    average_service_time: int = 0
    median_service_time: int = 0
    min_service_time: int = 0
    max_service_time: int = 0
    total_service_time: int = 0


class HourlyStat(BaseModel):
    hour: int = Field(..., ge=0, le=23)
    queue_count: int
    average_wait_time: int
    completion_rate: int


class StaffingRecommendation(BaseModel):
    hour: int = Field(..., ge=0, le=23)
    recommended_employees: int
    reason: str


class QueuePeakHoursAnalytics(BaseModel):
    hourly_stats: List[HourlyStat] = Field(default_factory=list)
    peak_hours: List[HourlyStat] = Field(default_factory=list)
    quiet_hours: List[HourlyStat] = Field(default_factory=list)
    recommended_staffing: List[StaffingRecommendation] = Field(default_factory=list)


class ServiceStat(BaseModel):
    service_id: str
    service_name: str
    total_count: int
    completed_count: int
    average_wait_time: int
    average_service_time: int
    revenue: float
    popularity_score: int


class ServiceRanking(BaseModel):
    service_id: str
    service_name: str
    queue_count: int
    revenue: float


class QueueServiceAnalytics(BaseModel):
    service_stats: List[ServiceStat] = Field(default_factory=list)
    top_services: List[ServiceRanking] = Field(default_factory=list)
    least_popular_services: List[ServiceRanking] = Field(default_factory=list)


class AnalyticsSnapshot(BaseModel):
    """
    Aggregates computed for one shop over one date range and scope.
    Stored in the analytics cache and reused while fresh.
    """
    shop_id: str
    date_range: DateRange
    employee_id: Optional[str] = None
    service_id: Optional[str] = None
    computed_at: datetime
    ttl_seconds: int = 300

    summary: QueueAnalyticsSummary
    time: QueueTimeAnalytics
    peak_hours: QueuePeakHoursAnalytics
    services: QueueServiceAnalytics

    def matches(self, date_from: str, date_to: str, employee_id: Optional[str], service_id: Optional[str]) -> bool:
        return (
            self.date_range.date_from == date_from
            and self.date_range.date_to == date_to
            and self.employee_id == employee_id
            and self.service_id == service_id
        )

    def age_seconds(self, now: datetime) -> float:
        return (now - self.computed_at).total_seconds()

import yaml
import os
from typing import List, Optional, Dict
from pydantic import BaseModel, Field, field_validator, model_validator


class DatabaseConfig(BaseModel):
    url: str
    echo: bool = False


class MatchWeights(BaseModel):
    """
    Factor weights for the overall match score.

    overall = (skills * w_s + availability * w_a + location * w_l + reliability * w_r) / 100

    Defaults: skills 40, availability 30, location 20, reliability 10.
    """
    skills: float = 40.0
    availability: float = 30.0
    location: float = 20.0
    reliability: float = 10.0

    @model_validator(mode='after')
    def _check_total(self) -> 'MatchWeights':
        for name in ('skills', 'availability', 'location', 'reliability'):
            if getattr(self, name) < 0:
                raise ValueError(f"match weight '{name}' must be non-negative")
        total = self.skills + self.availability + self.location + self.reliability
        if abs(total - 100.0) > 1e-6:
            raise ValueError(f"match weights must sum to 100 (got {total})")
        return self

    def as_dict(self) -> Dict[str, float]:
        return {
            'skills': self.skills,
            'availability': self.availability,
            'location': self.location,
            'reliability': self.reliability,
        }


class QualityBand(BaseModel):
    label: str
    min_score: int


def _default_quality_bands() -> List[QualityBand]:
    return [
        QualityBand(label='excellent', min_score=90),
        QualityBand(label='good', min_score=70),
        QualityBand(label='fair', min_score=50),
        QualityBand(label='poor', min_score=0),
    ]


class LocationConfig(BaseModel):
    """Distance falloff: floor + (100 - floor) * (1 - d/radius)^2 inside the radius."""
    radius_km: float = 50.0
    floor_score: float = 10.0
    # Used when either side has no coordinates
    neutral_score: float = 50.0

    @field_validator('radius_km')
    @classmethod
    def _positive_radius(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("radius_km must be positive")
        return v

    @field_validator('floor_score', 'neutral_score')
    @classmethod
    def _percent(cls, v: float) -> float:
        if not 0 <= v <= 100:
            raise ValueError("score must be within 0-100")
        return v


class MatchingConfig(BaseModel):
    """
    Configuration for the match scoring engine.

    Availability is evaluated on the event's wall-clock day in local_timezone.
    """
    weights: MatchWeights = Field(default_factory=MatchWeights)
    quality_bands: List[QualityBand] = Field(default_factory=_default_quality_bands)
    location: LocationConfig = Field(default_factory=LocationConfig)
    local_timezone: str = "UTC"

    # Factor below which a recommendation flags it as weak
    weak_factor_threshold: int = 50

    # Thread pool fan-out for candidate scoring; 1 = sequential
    max_workers: int = 1

    # Query defaults
    default_volunteer_limit: int = 20
    default_event_limit: int = 10
    suggestion_min_score: int = 70
    suggestions_per_event: int = 5

    @field_validator('quality_bands')
    @classmethod
    def _check_bands(cls, bands: List[QualityBand]) -> List[QualityBand]:
        if not bands:
            raise ValueError("at least one quality band is required")
        ordered = sorted(bands, key=lambda b: b.min_score, reverse=True)
        thresholds = [b.min_score for b in ordered]
        if len(set(thresholds)) != len(thresholds):
            raise ValueError("quality band thresholds must be distinct")
        if ordered[-1].min_score != 0:
            raise ValueError("lowest quality band must start at 0")
        if ordered[0].min_score > 100:
            raise ValueError("quality band thresholds must be within 0-100")
        return ordered

    @field_validator('max_workers')
    @classmethod
    def _workers(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_workers must be >= 1")
        return v


class AttendanceConfig(BaseModel):
    """Check-in window and admin override limits."""
    early_check_in_minutes: int = 30
    max_hours_worked: float = 24.0
    auto_checkout_note: str = "Auto-checked out at event end."
    # Attempts when the history insert races another writer
    insert_retry_attempts: int = 3


class ReliabilityConfig(BaseModel):
    """
    reliability = 0.4 * attendance_rate + 0.6 * completion_rate
                  - no_show_penalty * no_shows
                  + experience_bonus per threshold reached
    """
    attendance_weight: float = 0.4
    completion_weight: float = 0.6
    no_show_penalty: float = 10.0
    experience_bonus: float = 5.0
    experience_thresholds: List[int] = Field(default_factory=lambda: [5, 10])
    default_score: int = 75
    trend_months: int = 6
    # Admin dashboard
    recent_activity_days: int = 30
    top_performers: int = 5


class NotificationChannelConfig(BaseModel):
    """Configuration for a single notification channel."""
    enabled: bool = True
    recipient: Optional[str] = None  # Webhook URL for the webhook channel


class NotificationConfig(BaseModel):
    """
    Configuration for outbound notifications.

    Delivery is best-effort: the engine never fails an operation because
    a notification could not be sent.
    """
    enabled: bool = True

    # Channels to use; in_app persists a Notification row
    channels: Dict[str, NotificationChannelConfig] = Field(
        default_factory=lambda: {'in_app': NotificationChannelConfig()}
    )

    # Redis queue settings
    use_async_queue: bool = False
    redis_url: Optional[str] = None
    queue_name: str = "notifications"

    request_timeout_seconds: int = 10


class CacheConfig(BaseModel):
    """
    Redis cache of per-volunteer reliability stats, shared by every process.

    redis_url falls back to notifications.redis_url when unset.
    """
    enabled: bool = True
    redis_url: Optional[str] = None
    ttl_seconds: int = 3600
    key_prefix: str = "reliability"


class ScheduleConfig(BaseModel):
    """Finalize sweep loop run by `main.py sweep`."""
    interval_seconds: int = 300


class AppConfig(BaseModel):
    database: DatabaseConfig
    schedule: ScheduleConfig = Field(default_factory=ScheduleConfig)
    matching: MatchingConfig = Field(default_factory=MatchingConfig)
    attendance: AttendanceConfig = Field(default_factory=AttendanceConfig)
    reliability: ReliabilityConfig = Field(default_factory=ReliabilityConfig)
    notifications: NotificationConfig = Field(default_factory=NotificationConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)


def load_config(config_path: str = "config.yaml") -> AppConfig:
    # If not found at relative path (e.g. running from a subdirectory), try the repo root
    if not os.path.exists(config_path):
        base_dir = os.path.dirname(os.path.abspath(__file__))
        config_path = os.path.join(base_dir, "..", "config.yaml")

    with open(config_path, "r") as f:
        data = yaml.safe_load(f) or {}

    # Allow env var override for DB URL
    env_db_url = os.environ.get("DATABASE_URL")
    if env_db_url:
        data.setdefault('database', {})
        data['database']['url'] = env_db_url

    # Allow env var override for Redis URL
    env_redis_url = os.environ.get("REDIS_URL")
    if env_redis_url:
        if not data.get('notifications'):
            data['notifications'] = {}
        data['notifications']['redis_url'] = env_redis_url
        if not data.get('cache'):
            data['cache'] = {}
        data['cache']['redis_url'] = env_redis_url

    env_tz = os.environ.get("MATCHING_LOCAL_TIMEZONE")
    if env_tz:
        if not data.get('matching'):
            data['matching'] = {}
        data['matching']['local_timezone'] = env_tz

    return AppConfig(**data)

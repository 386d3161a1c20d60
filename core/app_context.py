from dataclasses import dataclass, field
from typing import Optional

from core.assignment import AssignmentService
from core.attendance import AttendanceService, KeyedLock
from core.cache import ReliabilityCache
from core.config_loader import AppConfig
from core.matcher import MatchingService
from core.reliability import ReliabilityAggregator
from core.scorer import MatchScoringService
from core.utils import Clock, utc_now
from database.repository import VolunteerRepository
from notification.service import NotificationService


@dataclass
class AppContext:
    """Application context container that holds all wired dependencies.

    Process-wide pieces (config, Redis reliability cache, keyed locks,
    scorer, notification service) live here. Services that touch the database are
    built per unit of work from the repo yielded by volunteer_uow().
    """
    config: AppConfig
    scorer: MatchScoringService
    reliability_cache: ReliabilityCache = field(default_factory=ReliabilityCache)
    locks: KeyedLock = field(default_factory=KeyedLock)
    notification_service: Optional[NotificationService] = None
    clock: Clock = utc_now

    @classmethod
    def build(cls, config: AppConfig, clock: Clock = utc_now) -> "AppContext":
        """Build an AppContext from config.

        Args:
            config: Loaded application configuration
            clock: Source of "now" shared by every service

        Returns:
            Fully wired AppContext instance (no DB session attached)
        """
        notification_service = None
        if config.notifications and config.notifications.enabled:
            notification_service = NotificationService.from_config(config.notifications)

        return cls(
            config=config,
            scorer=MatchScoringService(config.matching),
            reliability_cache=ReliabilityCache.from_config(
                config.cache, fallback_url=config.notifications.redis_url
            ),
            notification_service=notification_service,
            clock=clock,
        )

    def reliability(self, repo: VolunteerRepository) -> ReliabilityAggregator:
        return ReliabilityAggregator(repo, self.config.reliability, cache=self.reliability_cache, clock=self.clock)

    def matching(self, repo: VolunteerRepository) -> MatchingService:
        return MatchingService(
            repo,
            self.config.matching,
            self.reliability(repo),
            scorer=self.scorer,
            clock=self.clock,
        )

    def attendance(self, repo: VolunteerRepository) -> AttendanceService:
        return AttendanceService(
            repo,
            self.config.attendance,
            reliability_cache=self.reliability_cache,
            notification_service=self.notification_service,
            locks=self.locks,
            clock=self.clock,
        )

    def assignments(self, repo: VolunteerRepository) -> AssignmentService:
        return AssignmentService(
            repo,
            notification_service=self.notification_service,
            locks=self.locks,
            clock=self.clock,
        )

import logging
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from cache import ExpiringCache, get_cache
from config import get_settings
from database import init_schema, session_scope
from services import CategoryService


logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class SchedulerManager:
    def __init__(self, cache: Optional[ExpiringCache] = None) -> None:
        settings = get_settings()
        self.cache = cache if cache is not None else get_cache()
        self.scheduler = BackgroundScheduler(timezone=settings.timezone)

    def _seed(self) -> None:
        init_schema()
        with session_scope() as session:
            created = CategoryService(session, self.cache).ensure_predetermined()
            logger.info(f"startup_seed: predetermined_created={created}")

    def _prune_cache(self, source: str = "manual") -> int:
        removed = self.cache.prune()
        logger.info(f"cache_prune: source={source} removed={removed}")
        return removed

    def start(self) -> None:
        self._seed()

        trigger = IntervalTrigger(hours=1)
        self.scheduler.add_job(
            self._prune_cache,
            trigger,
            args=["hourly"],
            id="cache_prune_hourly",
            replace_existing=True,
            misfire_grace_time=300,
        )

        self.scheduler.start()
        logger.info("Scheduler started with hourly cache pruning")

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")

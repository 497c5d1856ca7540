"""毎日決まった時刻に全体クロールを実行するスケジューラ."""

from __future__ import annotations

import logging
import signal

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED
from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger

from placerank.config import CRAWL_HOUR, CRAWL_MINUTE, TIMEZONE
from placerank.crawler import CrawlOrchestrator
from placerank.handlers import crawl_all, scheduled_time

logger = logging.getLogger(__name__)

JOB_ID = "daily_crawl"


def _on_job_event(event) -> None:
    if event.exception:
        logger.error("スケジュールクロール失敗: %s", event.exception)
    else:
        logger.info("スケジュールクロール終了: %s", event.retval)


def _scheduled_crawl(orchestrator: CrawlOrchestrator) -> dict:
    logger.info("===== スケジュールクロール開始 =====")
    return crawl_all(orchestrator)


def build_scheduler(
    orchestrator: CrawlOrchestrator,
    *,
    hour: int = CRAWL_HOUR,
    minute: int = CRAWL_MINUTE,
    timezone: str = TIMEZONE,
) -> BlockingScheduler:
    """日次クロールを登録したスケジューラを返す（未起動）."""
    scheduler = BlockingScheduler(timezone=timezone)
    scheduler.add_listener(_on_job_event, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)
    scheduler.add_job(
        _scheduled_crawl,
        trigger=CronTrigger(hour=hour, minute=minute, timezone=timezone),
        args=[orchestrator],
        id=JOB_ID,
        name="place rank daily crawl",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    return scheduler


def serve(orchestrator: CrawlOrchestrator) -> None:
    """スケジューラを起動し、SIGINT / SIGTERM まで待機する."""
    scheduler = build_scheduler(orchestrator)

    def _shutdown(signum, frame):
        logger.info("終了シグナル受信 (%s)。停止します。", signum)
        orchestrator.stop()
        scheduler.shutdown(wait=False)

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    logger.info("スケジュール設定完了: 毎日 %s", scheduled_time())
    scheduler.start()

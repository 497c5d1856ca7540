"""外部から呼び出す操作. いずれも例外を投げず {"success": bool, ...} を返す."""

from __future__ import annotations

import logging
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Callable

from placerank.config import CRAWL_HOUR, CRAWL_MINUTE, TIMEZONE
from placerank.crawler import CrawlOrchestrator
from placerank.db import CampaignStore, RankHistoryStore
from placerank.models import PlaceInfoResult
from placerank.ranker import fetch_place_info

logger = logging.getLogger(__name__)

CAMPAIGN_NOT_FOUND_ERROR = "キャンペーンが見つかりません"


def scheduled_time() -> str:
    return f"{CRAWL_HOUR}:{CRAWL_MINUTE:02d} {TIMEZONE}"


def place_info(mid: str, *, fetch_info: Callable[[str], PlaceInfoResult] = fetch_place_info) -> dict:
    """店舗情報を取得する."""
    try:
        return asdict(fetch_info(mid))
    except Exception as e:
        logger.exception("店舗情報取得失敗: mid=%s", mid)
        return {"success": False, "mid": mid, "error": str(e)}


def crawl_all(orchestrator: CrawlOrchestrator) -> dict:
    """進行中キャンペーンを全件クロールする."""
    try:
        summary = orchestrator.run_all()
    except Exception as e:
        logger.exception("全体クロール失敗")
        return {"success": False, "error": str(e)}
    return {"success": True, "result": asdict(summary)}


def crawl_campaign(
    orchestrator: CrawlOrchestrator, campaigns: CampaignStore, campaign_id: str
) -> dict:
    """1キャンペーンをクロールする."""
    try:
        campaign = campaigns.get_by_id(campaign_id)
        if campaign is None:
            return {"success": False, "error": CAMPAIGN_NOT_FOUND_ERROR}

        logger.info("単体クロール開始: %s", campaign.company)
        detail = orchestrator.crawl_single(campaign)
    except Exception as e:
        logger.exception("単体クロール失敗: campaign_id=%s", campaign_id)
        return {"success": False, "error": str(e)}
    return {"success": True, "result": asdict(detail)}


def status(campaigns: CampaignStore, history: RankHistoryStore) -> dict:
    """進行中キャンペーン数と最終取得日時を返す."""
    try:
        active_count = campaigns.count_active()
        last_crawl = history.latest_checked_at()
    except Exception as e:
        logger.exception("状態取得失敗")
        return {"success": False, "error": str(e)}
    return {
        "success": True,
        "activeCampaigns": active_count,
        "lastCrawl": last_crawl,
        "scheduledTime": scheduled_time(),
        "time": datetime.now(timezone.utc).isoformat(),
    }

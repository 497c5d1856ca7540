"""キャンペーン順位クロールのオーケストレーター.

処理フロー:
  1. DB から進行中キャンペーンを取得
  2. 1件ずつ順番に順位を取得（並列化しない）
  3. 順位履歴を追記し、キャンペーンの current_rank / last_rank を更新
  4. リクエスト間は 2〜4 秒ランダムで待機
  5. 成功・失敗件数を集計して返す
"""

from __future__ import annotations

import logging
import random
import threading
import time
from typing import Callable, Iterable

from placerank.config import (
    PROGRESS_LOG_EVERY,
    REQUEST_INTERVAL_MAX,
    REQUEST_INTERVAL_MIN,
)
from placerank.db import CampaignStore, RankHistoryStore
from placerank.errors import PersistenceError
from placerank.models import BatchSummary, Campaign, CrawlDetail, RankCheck
from placerank.ranker import resolve_rank

logger = logging.getLogger(__name__)


class CrawlOrchestrator:
    """キャンペーンを順番にクロールする.

    状態は idle → running → completed（停止要求時は cancelled）。
    再開・リトライの状態は持たない。
    """

    def __init__(
        self,
        campaigns: CampaignStore,
        history: RankHistoryStore,
        *,
        resolver: Callable[[str, str], RankCheck] = resolve_rank,
        stop_event: threading.Event | None = None,
        sleep: Callable[[float], object] | None = None,
    ):
        self._campaigns = campaigns
        self._history = history
        self._resolver = resolver
        self._stop_event = stop_event or threading.Event()
        # 既定の待機は stop_event.wait なので停止要求で即座に抜ける
        self._sleep = sleep or self._stop_event.wait
        self.state = "idle"

    def stop(self) -> None:
        """実行中のバッチに停止を要求する. 処理中の1件は最後まで実行される."""
        self._stop_event.set()

    def crawl_single(self, campaign: Campaign) -> CrawlDetail:
        """1キャンペーンの順位を取得して保存する."""
        logger.info("キャンペーン処理: %s - %s", campaign.company, campaign.keyword)

        check = self._resolver(campaign.keyword, campaign.mid)
        self._persist(campaign, check)

        status = "failed" if check.error else "success"
        logger.info(
            "完了: %s - %s → %s",
            campaign.company,
            campaign.keyword,
            f"{check.rank}位" if check.rank else "圏外",
        )
        return CrawlDetail(
            campaign_id=campaign.id,
            company=campaign.company,
            keyword=campaign.keyword,
            status=status,
            rank=check.rank,
            error=check.error,
        )

    def _persist(self, campaign: Campaign, check: RankCheck) -> None:
        # 保存失敗はログのみ。処理結果・集計には影響させない
        try:
            self._history.append(campaign.id, check)
        except PersistenceError as e:
            logger.error("履歴保存失敗: campaign_id=%s, error=%s", campaign.id, e)
        except Exception:
            logger.exception("履歴保存中に想定外の例外: campaign_id=%s", campaign.id)

        try:
            self._campaigns.update_rank(campaign.with_rank(check.rank, check.checked_at))
        except PersistenceError as e:
            logger.error("キャンペーン更新失敗: campaign_id=%s, error=%s", campaign.id, e)
        except Exception:
            logger.exception("キャンペーン更新中に想定外の例外: campaign_id=%s", campaign.id)

    def run_batch(self, campaigns: Iterable[Campaign]) -> BatchSummary:
        """キャンペーンを順番にクロールし、集計を返す.

        1件の失敗・例外でバッチを止めない。details は常に入力と同じ件数になる。
        """
        campaigns = list(campaigns)
        summary = BatchSummary(total=len(campaigns), state="running")
        self.state = "running"
        start_time = time.monotonic()
        logger.info("===== 全体クロール開始: %d 件 =====", len(campaigns))

        for i, campaign in enumerate(campaigns):
            if self._stop_event.is_set():
                logger.warning("停止要求を受けました。残り %d 件をスキップします", len(campaigns) - i)
                for rest in campaigns[i:]:
                    summary.skipped += 1
                    summary.details.append(_detail_for(rest, status="skipped"))
                break

            try:
                detail = self.crawl_single(campaign)
            except Exception as e:
                logger.exception("キャンペーン処理中に例外: %s", getattr(campaign, "id", "?"))
                detail = _detail_for(campaign, status="error", error=str(e))

            if detail.status == "success":
                summary.success += 1
            else:
                summary.failed += 1
            summary.details.append(detail)

            if (i + 1) % PROGRESS_LOG_EVERY == 0:
                logger.info("進捗: %d/%d", i + 1, len(campaigns))

            if i < len(campaigns) - 1:
                self._sleep(random.uniform(REQUEST_INTERVAL_MIN, REQUEST_INTERVAL_MAX))

        summary.elapsed = time.monotonic() - start_time
        summary.state = "cancelled" if summary.skipped else "completed"
        self.state = summary.state

        logger.info("===== 全体クロール終了 (%s) =====", summary.state)
        logger.info(
            "総 %d 件中 成功: %d, 失敗: %d, スキップ: %d, 所要時間: %.1f 秒",
            summary.total, summary.success, summary.failed, summary.skipped, summary.elapsed,
        )
        return summary

    def run_all(self) -> BatchSummary:
        """進行中のキャンペーン全件をクロールする.

        Raises:
            PersistenceError: キャンペーン一覧の取得に失敗
        """
        campaigns = self._campaigns.list_active()
        if not campaigns:
            logger.warning("進行中のキャンペーンがありません。")
        return self.run_batch(campaigns)


def _detail_for(campaign, *, status: str, error: str | None = None) -> CrawlDetail:
    return CrawlDetail(
        campaign_id=getattr(campaign, "id", ""),
        company=getattr(campaign, "company", ""),
        keyword=getattr(campaign, "keyword", ""),
        status=status,
        error=error,
    )

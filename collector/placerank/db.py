"""Supabase データベース操作モジュール.

クライアントはプロセス起動時に create_supabase_client() で生成し、各ストアに渡す。
テーブルは SUPABASE_SCHEMA スキーマ配下の campaigns / campaign_rank_history。
"""

from __future__ import annotations

import logging
from contextlib import contextmanager

import httpx
from postgrest.exceptions import APIError
from supabase import Client, create_client

from placerank.config import (
    CRAWL_CATEGORY,
    SUPABASE_SCHEMA,
    SUPABASE_SERVICE_KEY,
    SUPABASE_URL,
)
from placerank.errors import ConfigError, PersistenceError
from placerank.models import Campaign, RankCheck

logger = logging.getLogger(__name__)


def create_supabase_client(
    url: str = SUPABASE_URL, key: str = SUPABASE_SERVICE_KEY
) -> Client:
    """Supabase クライアントを生成する.

    Raises:
        ConfigError: SUPABASE_URL / SUPABASE_SERVICE_KEY が未設定
    """
    if not url or not key:
        raise ConfigError("SUPABASE_URL または SUPABASE_SERVICE_KEY が設定されていません")
    client = create_client(url, key)
    logger.info("Supabase 接続完了")
    return client


@contextmanager
def _persistence(action: str):
    """Supabase / HTTP の例外を PersistenceError に変換する."""
    try:
        yield
    except (APIError, httpx.HTTPError) as e:
        raise PersistenceError(f"{action}: {e}") from e


class _Store:
    table_name = ""

    def __init__(self, client: Client, schema: str = SUPABASE_SCHEMA):
        self._client = client
        self._schema = schema

    def _table(self):
        return self._client.schema(self._schema).table(self.table_name)


class CampaignStore(_Store):
    """campaigns テーブル."""

    table_name = "campaigns"

    def list_active(self, category: str = CRAWL_CATEGORY) -> list[Campaign]:
        """進行中（status=active）のキャンペーンを取得する."""
        with _persistence("キャンペーン一覧の取得失敗"):
            resp = (
                self._table()
                .select("*")
                .eq("status", "active")
                .eq("category", category)
                .execute()
            )
        return [Campaign.from_row(row) for row in resp.data or []]

    def get_by_id(self, campaign_id: str) -> Campaign | None:
        with _persistence(f"キャンペーンの取得失敗 (id={campaign_id})"):
            resp = (
                self._table()
                .select("*")
                .eq("id", campaign_id)
                .limit(1)
                .execute()
            )
        if not resp.data:
            return None
        return Campaign.from_row(resp.data[0])

    def count_active(self, category: str = CRAWL_CATEGORY) -> int:
        with _persistence("進行中キャンペーン数の取得失敗"):
            resp = (
                self._table()
                .select("id", count="exact", head=True)
                .eq("status", "active")
                .eq("category", category)
                .execute()
            )
        return resp.count or 0

    def update_rank(self, campaign: Campaign) -> None:
        """順位関連カラム（last_rank / current_rank / last_rank_checked）を更新する.

        Args:
            campaign: Campaign.with_rank() 適用済みのキャンペーン
        """
        with _persistence(f"キャンペーン更新失敗 (id={campaign.id})"):
            (
                self._table()
                .update({
                    "last_rank": campaign.last_rank,
                    "current_rank": campaign.current_rank,
                    "last_rank_checked": campaign.last_rank_checked,
                })
                .eq("id", campaign.id)
                .execute()
            )


class RankHistoryStore(_Store):
    """campaign_rank_history テーブル（追記のみ）."""

    table_name = "campaign_rank_history"

    def append(self, campaign_id: str, check: RankCheck) -> None:
        with _persistence(f"順位履歴の保存失敗 (campaign_id={campaign_id})"):
            self._table().insert({
                "campaign_id": campaign_id,
                "rank": check.rank,
                "total_results": check.total_results,
                "error": check.error,
                "checked_at": check.checked_at,
            }).execute()

    def latest_checked_at(self) -> str | None:
        """最後に順位を取得した日時を返す. 履歴が無ければ None."""
        with _persistence("最終取得日時の取得失敗"):
            resp = (
                self._table()
                .select("checked_at")
                .order("checked_at", desc=True)
                .limit(1)
                .execute()
            )
        if not resp.data:
            return None
        return resp.data[0].get("checked_at")

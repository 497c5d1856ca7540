"""ネイバープレイス順位取得 — メインエントリーポイント.

使い方:
  python -m placerank.main run               # 進行中キャンペーンを全件クロール
  python -m placerank.main check <id>        # 1キャンペーンだけクロール
  python -m placerank.main info <mid>        # 店舗情報を取得
  python -m placerank.main status            # 進行中件数・最終取得日時
  python -m placerank.main schedule          # 毎日 CRAWL_HOUR:CRAWL_MINUTE に全体クロール
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import datetime
from functools import partial

import requests

from placerank import handlers
from placerank.config import LOG_DIR, PROXY_URL
from placerank.crawler import CrawlOrchestrator
from placerank.db import CampaignStore, RankHistoryStore, create_supabase_client
from placerank.errors import ConfigError
from placerank.ranker import fetch_place_info, resolve_rank
from placerank.scheduler import serve
from placerank.transport import fetch_html


def setup_logging() -> None:
    """ロギングの初期設定."""
    log_file = LOG_DIR / f"crawler_{datetime.now().strftime('%Y%m%d')}.log"
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(log_file, encoding="utf-8"),
        ],
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="ネイバープレイス順位クローラー")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("run", help="進行中キャンペーンを全件クロール")

    check = sub.add_parser("check", help="1キャンペーンだけクロール")
    check.add_argument("campaign_id")

    info = sub.add_parser("info", help="店舗情報を取得")
    info.add_argument("mid")

    sub.add_parser("status", help="クロール状態を表示")
    sub.add_parser("schedule", help="日次スケジューラを起動")
    return parser


def _print(envelope: dict) -> None:
    print(json.dumps(envelope, ensure_ascii=False, indent=2))


def run(argv: list[str] | None = None) -> int:
    """メイン処理."""
    args = build_parser().parse_args(argv)
    command = args.command or "run"

    setup_logging()
    logger = logging.getLogger(__name__)
    logger.info("=== ネイバープレイス順位クローラー: %s ===", command)
    logger.info("プロキシ: %s", "設定済み" if PROXY_URL else "未設定")

    with requests.Session() as session:
        fetch = partial(fetch_html, session=session)

        if command == "info":
            envelope = handlers.place_info(args.mid, fetch_info=partial(fetch_place_info, fetch=fetch))
            _print(envelope)
            return 0 if envelope["success"] else 1

        try:
            client = create_supabase_client()
        except ConfigError as e:
            logger.error("%s", e)
            _print({"success": False, "error": str(e)})
            return 2

        campaigns = CampaignStore(client)
        history = RankHistoryStore(client)
        orchestrator = CrawlOrchestrator(
            campaigns, history, resolver=partial(resolve_rank, fetch=fetch)
        )

        if command == "schedule":
            serve(orchestrator)
            return 0

        if command == "check":
            envelope = handlers.crawl_campaign(orchestrator, campaigns, args.campaign_id)
        elif command == "status":
            envelope = handlers.status(campaigns, history)
        else:
            envelope = handlers.crawl_all(orchestrator)

    _print(envelope)
    return 0 if envelope["success"] else 1


if __name__ == "__main__":
    sys.exit(run())

"""設定モジュール — 環境変数・定数定義."""

import os
from pathlib import Path

from dotenv import load_dotenv

# .env はプロジェクトルートに配置
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

# --- Supabase ---
# クライアント生成時に必須チェックする（import 時には要求しない）
SUPABASE_URL: str = os.environ.get("SUPABASE_URL", "")
SUPABASE_SERVICE_KEY: str = os.environ.get("SUPABASE_SERVICE_KEY", "")
SUPABASE_SCHEMA: str = os.environ.get("SUPABASE_SCHEMA", "public")

# --- ネイバー ---
PLACE_URL_TEMPLATE = "https://m.place.naver.com/place/{mid}/home"
SEARCH_URL_TEMPLATE = "https://map.naver.com/p/search/{keyword}"
SEARCH_REFERER = "https://map.naver.com/"

# --- User-Agent ---
PC_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)
SP_USER_AGENT = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 16_0 like Mac OS X) "
    "AppleWebKit/605.1.15 (KHTML, like Gecko) "
    "Version/16.0 Mobile/15E148 Safari/604.1"
)

USER_AGENTS = {
    "pc": PC_USER_AGENT,
    "sp": SP_USER_AGENT,
}

ACCEPT_LANGUAGE = "ko-KR,ko;q=0.9"

# --- プロキシ ---
PROXY_URL: str = os.environ.get("PROXY_URL", "")
PROXY_PORT_MIN = 10001
PROXY_PORT_MAX = 10100  # 両端を含む

# --- リクエスト設定 ---
REQUEST_INTERVAL_MIN = 2.0
REQUEST_INTERVAL_MAX = 4.0
REQUEST_TIMEOUT = 15  # 秒

# --- クロール ---
CRAWL_CATEGORY = "place"
PROGRESS_LOG_EVERY = 10

# --- スケジュール ---
CRAWL_HOUR = int(os.environ.get("CRAWL_HOUR", "14"))
CRAWL_MINUTE = int(os.environ.get("CRAWL_MINUTE", "0"))
TIMEZONE = os.environ.get("TIMEZONE", "Asia/Seoul")

# --- ログ ---
LOG_DIR = Path(__file__).resolve().parent.parent / "logs"
LOG_DIR.mkdir(exist_ok=True)

"""HTTP 取得モジュール.

プロキシ設定時はポートをランダムに差し替えてローテーションする。
リトライは行わない。
"""

from __future__ import annotations

import logging
import random
from urllib.parse import urlsplit, urlunsplit

import requests

from placerank.config import (
    ACCEPT_LANGUAGE,
    PROXY_PORT_MAX,
    PROXY_PORT_MIN,
    PROXY_URL,
    REQUEST_TIMEOUT,
    USER_AGENTS,
)
from placerank.errors import TransportError

logger = logging.getLogger(__name__)


def rotate_proxy_url(base_url: str, rng: random.Random | None = None) -> str:
    """プロキシ URL のポートを PROXY_PORT_MIN〜PROXY_PORT_MAX のランダム値に置き換える.

    スキーム・認証情報・ホストはそのまま残す。ポートが無い場合は付与する。
    スキームが無い場合（user:pass@host:port 形式）は http:// とみなす。
    """
    if "://" not in base_url:
        base_url = f"http://{base_url}"
    port = (rng or random).randint(PROXY_PORT_MIN, PROXY_PORT_MAX)
    parts = urlsplit(base_url)
    netloc = parts.netloc
    userinfo = ""
    if "@" in netloc:
        userinfo, netloc = netloc.rsplit("@", 1)
        userinfo += "@"
    host = parts.hostname or ""
    if ":" in host:  # IPv6
        host = f"[{host}]"
    return urlunsplit(parts._replace(netloc=f"{userinfo}{host}:{port}"))


def _proxies(proxy_url: str) -> dict[str, str] | None:
    if not proxy_url:
        logger.warning("PROXY_URL が未設定です。プロキシなしで接続します。")
        return None
    rotated = rotate_proxy_url(proxy_url)
    return {"http": rotated, "https": rotated}


def fetch_html(
    url: str,
    *,
    device: str = "pc",
    params: dict | None = None,
    referer: str | None = None,
    proxy_url: str = PROXY_URL,
    session: requests.Session | None = None,
) -> str:
    """ページの HTML を取得する.

    Args:
        url: 取得先 URL
        device: "pc" or "sp"（User-Agent の切り替え）
        params: クエリパラメータ
        referer: Referer ヘッダ
        proxy_url: ベースとなるプロキシ URL。空ならプロキシなし
        session: 使い回す requests.Session。None なら requests を直接使う

    Returns:
        HTML 文字列

    Raises:
        TransportError: 通信失敗・タイムアウト・2xx 以外
    """
    headers = {
        "User-Agent": USER_AGENTS[device],
        "Accept-Language": ACCEPT_LANGUAGE,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    }
    if referer:
        headers["Referer"] = referer

    http = session or requests
    try:
        resp = http.get(
            url,
            params=params,
            headers=headers,
            proxies=_proxies(proxy_url),
            timeout=REQUEST_TIMEOUT,
        )
        resp.raise_for_status()
        return resp.text
    except requests.RequestException as e:
        logger.error("ページ取得失敗: url=%s, error=%s", url, e)
        raise TransportError(str(e)) from e

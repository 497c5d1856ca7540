"""ネイバー地図検索の順位取得モジュール."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timezone
from urllib.parse import quote

from placerank.config import PLACE_URL_TEMPLATE, SEARCH_REFERER, SEARCH_URL_TEMPLATE
from placerank.errors import TransportError
from placerank.extractor import (
    extract_listings_with_source,
    extract_profile,
    normalize_place_id,
)
from placerank.models import PlaceInfoResult, RankCheck, SearchResult
from placerank.transport import fetch_html

logger = logging.getLogger(__name__)

NO_RESULTS_ERROR = "検索結果を抽出できませんでした"
PROFILE_NOT_FOUND_ERROR = "店舗情報を取得できませんでした"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def find_place_rank(results: list[SearchResult], target_mid) -> int | None:
    """検索結果リストから指定プレイスの順位を見つける.

    広告は順位に数えない。同じ ID が複数ある場合は最初のものを採用する。

    Returns:
        順位（1始まり）。見つからなければ None（圏外）。
    """
    target = normalize_place_id(target_mid)
    if not target:
        return None

    organic = (r for r in results if not r.is_ad)
    for rank, r in enumerate(organic, start=1):
        if normalize_place_id(r.place_id) == target:
            return rank
    return None


def resolve_rank(keyword: str, target_mid, *, fetch=fetch_html) -> RankCheck:
    """キーワード検索での指定プレイスの順位を取得する.

    通信・解析の失敗は例外にせず、error を埋めた RankCheck として返す。
    """
    mid = normalize_place_id(target_mid)
    logger.info("順位検索開始: keyword=%s, mid=%s", keyword, mid)

    url = SEARCH_URL_TEMPLATE.format(keyword=quote(keyword, safe=""))
    try:
        html = fetch(url, device="pc", referer=SEARCH_REFERER)
    except TransportError as e:
        logger.error("順位検索失敗: keyword=%s, error=%s", keyword, e)
        return RankCheck(
            mid=mid, keyword=keyword, rank=None, total_results=0,
            checked_at=_now(), error=str(e),
        )

    source, results = extract_listings_with_source(html)
    if source == "none":
        logger.error("%s: keyword=%s", NO_RESULTS_ERROR, keyword)
        return RankCheck(
            mid=mid, keyword=keyword, rank=None, total_results=0,
            checked_at=_now(), error=NO_RESULTS_ERROR,
        )

    rank = find_place_rank(results, mid)
    organic_count = sum(1 for r in results if not r.is_ad)

    if rank is not None:
        logger.info("発見: keyword=%s, mid=%s → %d位 (%s)", keyword, mid, rank, source)
    else:
        logger.info("圏外: keyword=%s, mid=%s (%d 件中)", keyword, mid, organic_count)
        for r in results[:5]:
            logger.debug("  %d位: id=%s, name=%s", r.position, r.place_id, r.name)

    return RankCheck(
        mid=mid,
        keyword=keyword,
        rank=rank,
        total_results=organic_count,
        checked_at=_now(),
        source=source,
    )


def fetch_place_info(mid, *, fetch=fetch_html) -> PlaceInfoResult:
    """プレイス詳細ページから店舗情報を取得する."""
    mid = normalize_place_id(mid)
    logger.info("店舗情報取得開始: mid=%s", mid)

    try:
        html = fetch(PLACE_URL_TEMPLATE.format(mid=quote(mid, safe="")), device="sp")
    except TransportError as e:
        return PlaceInfoResult(success=False, mid=mid, error=str(e))

    profile = extract_profile(html)
    if profile is None:
        return PlaceInfoResult(success=False, mid=mid, error=PROFILE_NOT_FOUND_ERROR)

    if not profile.mid:
        profile = replace(profile, mid=mid)
    return PlaceInfoResult(success=True, mid=mid, profile=profile)

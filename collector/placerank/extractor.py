"""ネイバープレイスのページから店舗情報・検索結果を抽出するモジュール.

店舗情報の取得戦略（先に成功したものを採用）:
  1. __APOLLO_STATE__ の JSON パース（PlaceDetailBase:*）
  2. og:* メタタグ / JSON-LD
  3. HTML の見出し要素

検索結果の取得戦略:
  1. __APOLLO_STATE__ の JSON パース（PlaceSummary:* / Place:*、広告除外）
  2. HTML 全体から place/{id} を正規表現で抽出（フォールバック）

各戦略は (html) -> 結果 | None の純粋関数。ParseError は次の戦略へのフォールバックとして扱う。
"""

from __future__ import annotations

import json
import logging
import re
from typing import Callable

from bs4 import BeautifulSoup

from placerank.errors import ParseError
from placerank.models import PlaceProfile, SearchResult

logger = logging.getLogger(__name__)

_APOLLO_PATTERN = re.compile(
    r"(?:window\.)?__APOLLO_STATE__\s*=\s*({.+?});?\s*</script>", re.DOTALL
)

# place/{数字ID} 形式のパス（ID 抽出フォールバック用）
_PLACE_PATH_PATTERN = re.compile(r"place/(\d+)")

# og:title の「店舗名 : ネイバープレイス」形式から店舗名を取り出す
_TITLE_SEPARATOR_PATTERN = re.compile(r"[:\-|]")

_DETAIL_KEY_PREFIX = "PlaceDetailBase:"
_RESULT_KEY_PREFIXES = ("PlaceSummary:", "Place:")
_AD_FLAG_FIELDS = ("isAd", "isAdv", "ad")
_ID_FIELDS = ("id", "placeId")

_NAME_SELECTORS = ("span.GHAhO", "span.place_name", "h1")

_LD_BUSINESS_TYPES = {
    "LocalBusiness",
    "Restaurant",
    "FoodEstablishment",
    "CafeOrCoffeeShop",
    "Store",
    "HealthAndBeautyBusiness",
    "MedicalBusiness",
    "ProfessionalService",
    "Place",
}


def normalize_place_id(value) -> str:
    """プレイス ID を比較用の文字列に正規化する.

    数値・文字列のどちらで来ても同じ表現になるようにする。
    """
    if value is None or isinstance(value, bool):
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


# ============================================
# 共通
# ============================================

def _load_apollo_state(html: str) -> dict | None:
    """__APOLLO_STATE__ を dict として取り出す. 埋め込みが無ければ None.

    Raises:
        ParseError: JSON が壊れている
    """
    match = _APOLLO_PATTERN.search(html)
    if not match:
        return None

    try:
        state = json.loads(match.group(1))
    except json.JSONDecodeError as e:
        raise ParseError(f"__APOLLO_STATE__ JSON パースエラー: {e}") from e

    if not isinstance(state, dict):
        raise ParseError("__APOLLO_STATE__ がオブジェクトではありません")
    return state


def _first_present(d: dict, keys: tuple[str, ...]):
    for key in keys:
        value = d.get(key)
        if value not in (None, ""):
            return value
    return None


def _text(value) -> str:
    return str(value).strip() if value is not None else ""


def _run_cascade(strategies, html: str):
    """戦略を順に試し、最初に得られた (戦略名, 結果) を返す. 全滅時は ("none", None)."""
    for name, strategy in strategies:
        try:
            result = strategy(html)
        except ParseError as e:
            logger.warning("%s 戦略で解析失敗。次の方法を試します: %s", name, e)
            continue
        if result is not None:
            logger.debug("%s 戦略で抽出成功", name)
            return name, result
    return "none", None


# ============================================
# 店舗情報
# ============================================

def _profile_from_apollo(html: str) -> PlaceProfile | None:
    state = _load_apollo_state(html)
    if not state:
        return None

    key = next((k for k in state if k.startswith(_DETAIL_KEY_PREFIX)), None)
    if key is None:
        return None

    place = state[key]
    if not isinstance(place, dict) or not _text(place.get("name")):
        return None

    return PlaceProfile(
        name=_text(place["name"]),
        thumbnail=_text(_first_present(place, ("imageUrl", "thumbnailUrl"))),
        address=_text(_first_present(place, ("roadAddress", "address"))),
        category=_text(place.get("category")),
        phone=_text(_first_present(place, ("phone", "virtualPhone"))),
        mid=normalize_place_id(place.get("id") or key[len(_DETAIL_KEY_PREFIX):]),
    )


def _meta_content(soup: BeautifulSoup, prop: str) -> str:
    tag = soup.find("meta", attrs={"property": prop})
    return _text(tag.get("content")) if tag else ""


def _ld_types(obj: dict) -> set[str]:
    types = obj.get("@type")
    if isinstance(types, str):
        return {types}
    if isinstance(types, list):
        return {t for t in types if isinstance(t, str)}
    return set()


def _ld_address(value) -> str:
    if isinstance(value, dict):
        parts = (
            value.get("addressRegion"),
            value.get("addressLocality"),
            value.get("streetAddress"),
        )
        return " ".join(_text(p) for p in parts if p)
    return _text(value)


def _ld_image(value) -> str:
    if isinstance(value, list):
        value = value[0] if value else ""
    if isinstance(value, dict):
        value = value.get("url")
    return _text(value)


def _iter_json_ld(soup: BeautifulSoup):
    """JSON-LD ブロック内のオブジェクトを順に返す. 壊れたブロックは読み飛ばす."""
    for script in soup.find_all("script", type="application/ld+json"):
        try:
            data = json.loads(script.string)
        except (json.JSONDecodeError, TypeError):
            continue

        items = data if isinstance(data, list) else [data]
        for item in items:
            if not isinstance(item, dict):
                continue
            yield item
            graph = item.get("@graph")
            if not isinstance(graph, list):
                continue
            for node in graph:
                if isinstance(node, dict):
                    yield node


def _profile_from_metadata(html: str) -> PlaceProfile | None:
    soup = BeautifulSoup(html, "html.parser")
    og_image = _meta_content(soup, "og:image")

    og_title = _meta_content(soup, "og:title")
    name = _TITLE_SEPARATOR_PATTERN.split(og_title, maxsplit=1)[0].strip()
    if name:
        return PlaceProfile(name=name, thumbnail=og_image)

    for item in _iter_json_ld(soup):
        if not _ld_types(item) & _LD_BUSINESS_TYPES:
            continue
        name = _text(item.get("name"))
        if not name:
            continue
        return PlaceProfile(
            name=name,
            thumbnail=_ld_image(item.get("image")) or og_image,
            address=_ld_address(item.get("address")),
            phone=_text(item.get("telephone")),
        )

    return None


def _profile_from_markup(html: str) -> PlaceProfile | None:
    soup = BeautifulSoup(html, "html.parser")
    for selector in _NAME_SELECTORS:
        el = soup.select_one(selector)
        name = el.get_text(strip=True) if el else ""
        if name:
            return PlaceProfile(name=name, thumbnail=_meta_content(soup, "og:image"))
    return None


PROFILE_STRATEGIES: tuple[tuple[str, Callable[[str], PlaceProfile | None]], ...] = (
    ("apollo", _profile_from_apollo),
    ("metadata", _profile_from_metadata),
    ("markup", _profile_from_markup),
)


def extract_profile(html: str) -> PlaceProfile | None:
    """プレイス詳細ページの HTML から店舗情報を抽出する.

    Returns:
        PlaceProfile。どの戦略でも店舗名が取れなければ None。
    """
    source, profile = _run_cascade(PROFILE_STRATEGIES, html)
    if profile is None:
        logger.info("店舗情報の抽出に失敗しました")
    else:
        logger.info("%s から店舗情報を抽出: %s", source, profile.name)
    return profile


# ============================================
# 検索結果
# ============================================

def _collect_apollo_places(html: str) -> list[SearchResult]:
    """__APOLLO_STATE__ から検索結果を出現順に集める（広告を含む、position は未採番）."""
    state = _load_apollo_state(html)
    if not state:
        return []

    results: list[SearchResult] = []
    for key, place in state.items():
        if not key.startswith(_RESULT_KEY_PREFIXES) or not isinstance(place, dict):
            continue

        # id フィールドが無い場合はキーの "Place:{id}" 部分を使う
        place_id = normalize_place_id(_first_present(place, _ID_FIELDS))
        if not place_id:
            place_id = normalize_place_id(key.split(":", 1)[1])

        results.append(SearchResult(
            position=0,
            place_id=place_id,
            name=_text(place.get("name")),
            is_ad=any(place.get(flag) for flag in _AD_FLAG_FIELDS),
        ))

    return results


def _number_organic(results: list[SearchResult]) -> list[SearchResult]:
    organic = [r for r in results if not r.is_ad]
    for i, r in enumerate(organic, start=1):
        r.position = i
    return organic


def _listings_from_apollo(html: str) -> list[SearchResult] | None:
    """店舗エントリが1件も無ければ None. 全件広告の場合は空リスト（フォールバックしない）."""
    places = _collect_apollo_places(html)
    if not places:
        return None
    organic = _number_organic(places)
    logger.info(
        "Apollo から %d 件の店舗を発見（広告除外後 %d 件）", len(places), len(organic)
    )
    return organic


def _listings_from_id_pattern(html: str) -> list[SearchResult] | None:
    found_ids = list(dict.fromkeys(_PLACE_PATH_PATTERN.findall(html)))
    logger.info("正規表現で %d 件の ID を発見", len(found_ids))
    if not found_ids:
        return None
    return [
        SearchResult(position=i, place_id=place_id, name="")
        for i, place_id in enumerate(found_ids, start=1)
    ]


LISTING_STRATEGIES: tuple[tuple[str, Callable[[str], list[SearchResult] | None]], ...] = (
    ("apollo", _listings_from_apollo),
    ("id_pattern", _listings_from_id_pattern),
)


def extract_listings_with_source(html: str) -> tuple[str, list[SearchResult]]:
    """検索結果を抽出し、使った戦略名と一緒に返す."""
    source, results = _run_cascade(LISTING_STRATEGIES, html)
    return source, results or []


def extract_listings(html: str) -> list[SearchResult]:
    """検索結果 HTML から広告を除いた店舗リストを表示順に抽出する."""
    return extract_listings_with_source(html)[1]

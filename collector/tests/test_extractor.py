"""extractor モジュールのユニットテスト."""

from pathlib import Path

from placerank import extractor
from placerank.errors import ParseError
from placerank.extractor import (
    extract_listings,
    extract_listings_with_source,
    extract_profile,
    normalize_place_id,
)
from placerank.models import PlaceProfile

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def _load_fixture(name: str) -> str:
    return (FIXTURES_DIR / name).read_text(encoding="utf-8")


class TestExtractProfile:
    """extract_profile のテスト."""

    def test_apollo_state(self):
        """__APOLLO_STATE__ の PlaceDetailBase から抽出できること（og タグより優先）."""
        profile = extract_profile(_load_fixture("place_apollo.html"))

        assert profile == PlaceProfile(
            name="라칸 커피 성수점",
            thumbnail="https://example.com/main.jpg",
            address="서울 성동구 성수이로 1",
            category="카페,디저트",
            phone="02-123-4567",
            mid="1234567890",
        )

    def test_og_title(self):
        """og:title の区切り文字より前を店舗名とすること."""
        profile = extract_profile(_load_fixture("place_og.html"))

        assert profile.name == "서울 미용실"
        assert profile.thumbnail == "https://example.com/salon.jpg"
        assert profile.address == ""

    def test_broken_apollo_falls_back_to_og(self):
        """Apollo の JSON が壊れていても og タグにフォールバックすること."""
        profile = extract_profile(_load_fixture("place_broken_apollo.html"))

        assert profile.name == "부산 횟집"
        assert profile.thumbnail == "https://example.com/fish.jpg"

    def test_broken_apollo_falls_back_to_markup(self):
        """Apollo も og:title も無ければ HTML の見出しにフォールバックすること."""
        profile = extract_profile(_load_fixture("place_broken_markup.html"))

        assert profile.name == "대구 베이커리"
        assert profile.thumbnail == "https://example.com/bakery.jpg"

    def test_json_ld(self):
        """og:title が無い場合は JSON-LD の LocalBusiness 系から抽出すること."""
        profile = extract_profile(_load_fixture("place_json_ld.html"))

        assert profile.name == "제주 흑돼지집"
        assert profile.thumbnail == "https://example.com/pork.jpg"
        assert profile.address == "제주특별자치도 제주시 연동 1"
        assert profile.phone == "064-000-0000"

    def test_not_found(self):
        """どの方法でも店舗名が取れなければ None を返すこと."""
        assert extract_profile(_load_fixture("place_empty.html")) is None

    def test_idempotent(self):
        """同じ HTML からは常に同じ結果になること."""
        html = _load_fixture("place_apollo.html")
        assert extract_profile(html) == extract_profile(html)

    def test_title_separators(self):
        html = '<meta property="og:title" content="한강 치킨 - 네이버 플레이스">'
        assert extract_profile(html).name == "한강 치킨"

    def test_non_list_graph_falls_back_to_markup(self):
        """JSON-LD の @graph が null や dict でも見出しにフォールバックすること."""
        profile = extract_profile(_load_fixture("place_null_graph.html"))

        assert profile == PlaceProfile(name="마포 분식")

    def test_detail_without_name_falls_through(self):
        """PlaceDetailBase に name が無ければ次の方法を試すこと."""
        html = (
            "<h1>마포 분식</h1>"
            '<script>window.__APOLLO_STATE__ = {"PlaceDetailBase:5":{"id":"5"}};</script>'
        )
        assert extract_profile(html).name == "마포 분식"


class TestCascadeOrder:
    """戦略の優先順位のテスト."""

    def test_parse_error_moves_to_next_strategy(self, monkeypatch):
        calls = []

        def failing(html):
            calls.append("failing")
            raise ParseError("broken")

        def empty(html):
            calls.append("empty")
            return None

        def succeeding(html):
            calls.append("succeeding")
            return PlaceProfile(name="ok")

        monkeypatch.setattr(extractor, "PROFILE_STRATEGIES", (
            ("failing", failing), ("empty", empty), ("succeeding", succeeding),
        ))

        assert extract_profile("<html></html>") == PlaceProfile(name="ok")
        assert calls == ["failing", "empty", "succeeding"]

    def test_stops_at_first_success(self, monkeypatch):
        def first(html):
            return PlaceProfile(name="first")

        def second(html):
            raise AssertionError("呼ばれてはいけない")

        monkeypatch.setattr(extractor, "PROFILE_STRATEGIES", (
            ("first", first), ("second", second),
        ))

        assert extract_profile("").name == "first"


class TestExtractListings:
    """extract_listings のテスト."""

    def test_apollo_excludes_ads(self):
        """広告（isAd / isAdv / ad）を除外し、出現順に並ぶこと."""
        source, results = extract_listings_with_source(_load_fixture("search_apollo.html"))

        assert source == "apollo"
        assert [r.place_id for r in results] == ["222", "333", "555", "222"]
        assert not any(r.is_ad for r in results)

    def test_apollo_positions(self):
        """順位が広告除外後の 1 始まり連番になっていること."""
        results = extract_listings(_load_fixture("search_apollo.html"))
        assert [r.position for r in results] == [1, 2, 3, 4]

    def test_apollo_names(self):
        results = extract_listings(_load_fixture("search_apollo.html"))
        assert results[0].name == "성수 로스터리"
        assert results[1].name == "성수 베이글"

    def test_id_pattern_fallback(self):
        """Apollo が無い場合は place/{id} を重複除去して出現順に並べること."""
        source, results = extract_listings_with_source(_load_fixture("search_links.html"))

        assert source == "id_pattern"
        assert [r.place_id for r in results] == ["1001", "1002", "1003"]
        assert [r.position for r in results] == [1, 2, 3]
        assert all(r.name == "" for r in results)

    def test_broken_apollo_falls_back_to_id_pattern(self):
        source, results = extract_listings_with_source(
            _load_fixture("search_broken_apollo.html")
        )

        assert source == "id_pattern"
        assert [r.place_id for r in results] == ["2001", "2002"]

    def test_apollo_without_places_falls_back(self):
        """Apollo に店舗エントリが無ければフォールバックすること."""
        html = (
            '<a href="/place/7">x</a>'
            '<script>window.__APOLLO_STATE__ = {"ROOT_QUERY":{"a":1}};</script>'
        )
        source, results = extract_listings_with_source(html)

        assert source == "id_pattern"
        assert [r.place_id for r in results] == ["7"]

    def test_all_ads_does_not_fall_back(self):
        """Apollo の店舗エントリが全件広告なら ID 抽出にフォールバックしないこと."""
        source, results = extract_listings_with_source(_load_fixture("search_all_ads.html"))

        assert source == "apollo"
        assert results == []

    def test_empty_html(self):
        """空の HTML では空リストを返すこと."""
        source, results = extract_listings_with_source("<html><body></body></html>")
        assert source == "none"
        assert results == []


class TestNormalizePlaceId:
    """normalize_place_id のテスト."""

    def test_int(self):
        assert normalize_place_id(12345) == "12345"

    def test_integral_float(self):
        assert normalize_place_id(12345.0) == "12345"

    def test_string_is_stripped(self):
        assert normalize_place_id(" 12345 ") == "12345"

    def test_none(self):
        assert normalize_place_id(None) == ""

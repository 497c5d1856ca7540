"""ranker モジュールのユニットテスト."""

from pathlib import Path
from urllib.parse import quote

from placerank.errors import TransportError
from placerank.models import SearchResult
from placerank.ranker import (
    NO_RESULTS_ERROR,
    PROFILE_NOT_FOUND_ERROR,
    fetch_place_info,
    find_place_rank,
    resolve_rank,
)

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def _load_fixture(name: str) -> str:
    return (FIXTURES_DIR / name).read_text(encoding="utf-8")


class _FakeFetch:
    """fetch_html の代わり. 呼び出し内容を記録して固定の HTML を返す."""

    def __init__(self, html: str = "", error: Exception | None = None):
        self.html = html
        self.error = error
        self.calls: list[tuple[str, dict]] = []

    def __call__(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.error:
            raise self.error
        return self.html


class TestFindPlaceRank:
    """find_place_rank のテスト."""

    def test_ads_are_not_counted(self):
        results = [
            SearchResult(position=1, place_id="A", name="a"),
            SearchResult(position=2, place_id="B", name="b", is_ad=True),
            SearchResult(position=3, place_id="C", name="c"),
        ]
        assert find_place_rank(results, "C") == 2

    def test_first_occurrence_wins(self):
        results = [
            SearchResult(position=1, place_id="1", name=""),
            SearchResult(position=2, place_id="2", name=""),
            SearchResult(position=3, place_id="2", name=""),
        ]
        assert find_place_rank(results, "2") == 2

    def test_int_target_matches_string_id(self):
        results = [SearchResult(position=1, place_id="12345", name="")]
        assert find_place_rank(results, 12345) == 1

    def test_not_found(self):
        results = [SearchResult(position=1, place_id="1", name="")]
        assert find_place_rank(results, "999") is None

    def test_empty_target(self):
        results = [SearchResult(position=1, place_id="", name="")]
        assert find_place_rank(results, None) is None


class TestResolveRank:
    """resolve_rank のテスト."""

    def test_found_in_apollo(self):
        fetch = _FakeFetch(_load_fixture("search_apollo.html"))
        check = resolve_rank("성수 카페", "333", fetch=fetch)

        assert check.rank == 2
        assert check.total_results == 4
        assert check.error is None
        assert check.source == "apollo"
        assert check.keyword == "성수 카페"
        assert check.checked_at

    def test_numeric_target(self):
        fetch = _FakeFetch(_load_fixture("search_apollo.html"))
        assert resolve_rank("성수 카페", 222, fetch=fetch).rank == 1

    def test_not_found_is_not_error(self):
        """ページは取れたが対象が無い場合は圏外（エラーなし）."""
        fetch = _FakeFetch(_load_fixture("search_apollo.html"))
        check = resolve_rank("성수 카페", "999", fetch=fetch)

        assert check.rank is None
        assert check.total_results == 4
        assert check.error is None

    def test_id_pattern_fallback(self):
        fetch = _FakeFetch(_load_fixture("search_links.html"))
        check = resolve_rank("강남 미용실", "1003", fetch=fetch)

        assert check.rank == 3
        assert check.total_results == 3
        assert check.source == "id_pattern"

    def test_all_ads_is_clean_miss(self):
        """全件広告のページでは広告のリンクを順位に数えないこと."""
        fetch = _FakeFetch(_load_fixture("search_all_ads.html"))
        check = resolve_rank("홍대 카페", "222", fetch=fetch)

        assert check.rank is None
        assert check.total_results == 0
        assert check.error is None
        assert check.source == "apollo"

    def test_transport_error(self):
        fetch = _FakeFetch(error=TransportError("timeout"))
        check = resolve_rank("성수 카페", "333", fetch=fetch)

        assert check.rank is None
        assert check.total_results == 0
        assert check.error == "timeout"
        assert check.checked_at

    def test_nothing_extracted(self):
        fetch = _FakeFetch("<html><body></body></html>")
        check = resolve_rank("성수 카페", "333", fetch=fetch)

        assert check.rank is None
        assert check.total_results == 0
        assert check.error == NO_RESULTS_ERROR

    def test_request(self):
        """キーワードを URL エンコードして PC の検索ページを取得すること."""
        fetch = _FakeFetch(_load_fixture("search_apollo.html"))
        resolve_rank("성수 카페", "333", fetch=fetch)

        url, kwargs = fetch.calls[0]
        assert url == "https://map.naver.com/p/search/" + quote("성수 카페", safe="")
        assert kwargs["device"] == "pc"
        assert kwargs["referer"] == "https://map.naver.com/"


class TestFetchPlaceInfo:
    """fetch_place_info のテスト."""

    def test_success(self):
        fetch = _FakeFetch(_load_fixture("place_apollo.html"))
        result = fetch_place_info("1234567890", fetch=fetch)

        assert result.success is True
        assert result.profile.name == "라칸 커피 성수점"
        assert fetch.calls[0][0] == "https://m.place.naver.com/place/1234567890/home"
        assert fetch.calls[0][1]["device"] == "sp"

    def test_mid_filled_from_request(self):
        """og タグから抽出した場合は要求した mid を補うこと."""
        fetch = _FakeFetch(_load_fixture("place_og.html"))
        result = fetch_place_info(555, fetch=fetch)

        assert result.mid == "555"
        assert result.profile.mid == "555"

    def test_non_list_graph(self):
        fetch = _FakeFetch(_load_fixture("place_null_graph.html"))
        result = fetch_place_info("1", fetch=fetch)

        assert result.success is True
        assert result.profile.name == "마포 분식"
        assert result.profile.mid == "1"

    def test_not_found(self):
        fetch = _FakeFetch(_load_fixture("place_empty.html"))
        result = fetch_place_info("1", fetch=fetch)

        assert result.success is False
        assert result.profile is None
        assert result.error == PROFILE_NOT_FOUND_ERROR

    def test_transport_error(self):
        fetch = _FakeFetch(error=TransportError("403 Client Error"))
        result = fetch_place_info("1", fetch=fetch)

        assert result.success is False
        assert result.error == "403 Client Error"

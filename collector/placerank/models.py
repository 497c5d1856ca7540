"""データモデル定義."""

from __future__ import annotations

from dataclasses import dataclass, field, replace


@dataclass
class Campaign:
    """順位を追跡するキャンペーン（campaigns テーブルの1行）."""

    id: str  # campaigns.id
    mid: str  # ネイバープレイス ID
    company: str  # 表示名
    keyword: str
    current_rank: int | None = None  # None = 圏外 or 未取得
    last_rank: int | None = None  # 直前の current_rank
    last_rank_checked: str | None = None  # ISO 8601
    status: str = "active"  # "active" or "inactive"
    category: str = "place"

    @classmethod
    def from_row(cls, row: dict) -> Campaign:
        return cls(
            id=str(row["id"]),
            mid=str(row.get("mid") or ""),
            company=row.get("company") or "",
            keyword=row.get("keyword") or "",
            current_rank=row.get("current_rank"),
            last_rank=row.get("last_rank"),
            last_rank_checked=row.get("last_rank_checked"),
            status=row.get("status") or "active",
            category=row.get("category") or "place",
        )

    def with_rank(self, rank: int | None, checked_at: str) -> Campaign:
        """現在順位を last_rank に送り、新しい順位で上書きしたコピーを返す."""
        return replace(
            self,
            last_rank=self.current_rank,
            current_rank=rank,
            last_rank_checked=checked_at,
        )


@dataclass
class PlaceProfile:
    """プレイス詳細ページから抽出した店舗情報."""

    name: str
    thumbnail: str = ""
    address: str = ""
    category: str = ""
    phone: str = ""
    mid: str = ""


@dataclass
class SearchResult:
    """検索結果の1店舗を表す."""

    position: int  # 検索結果内の順位（1始まり）
    place_id: str  # 正規化済みのプレイス ID
    name: str  # 店舗名（ID 抽出フォールバック時は空）
    is_ad: bool = False


@dataclass
class RankCheck:
    """1回の順位取得結果. 成否にかかわらず必ず1件作られる."""

    mid: str
    keyword: str
    rank: int | None  # None = 圏外
    total_results: int
    checked_at: str  # ISO 8601
    error: str | None = None
    source: str = "none"  # 順位判定に使った抽出戦略


@dataclass
class PlaceInfoResult:
    """店舗情報取得のレスポンス."""

    success: bool
    mid: str
    profile: PlaceProfile | None = None
    error: str | None = None


@dataclass
class CrawlDetail:
    """バッチ内の1キャンペーン分の処理結果."""

    campaign_id: str
    company: str
    keyword: str
    status: str  # "success" / "failed" / "error" / "skipped"
    rank: int | None = None
    error: str | None = None


@dataclass
class BatchSummary:
    """バッチ全体の集計."""

    total: int = 0
    success: int = 0
    failed: int = 0
    skipped: int = 0
    details: list[CrawlDetail] = field(default_factory=list)
    elapsed: float = 0.0  # 秒
    state: str = "idle"

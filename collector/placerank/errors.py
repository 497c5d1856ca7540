"""例外定義.

順位取得の「圏外」は例外ではなく rank=None として扱う。
"""


class PlaceRankError(Exception):
    """本パッケージの例外の基底クラス."""


class ConfigError(PlaceRankError):
    """必須設定の欠落."""


class TransportError(PlaceRankError):
    """通信失敗（ネットワーク・タイムアウト・2xx 以外）."""


class ParseError(PlaceRankError):
    """埋め込み JSON やマークアップの解析失敗. 常に次の戦略へフォールバックする."""


class PersistenceError(PlaceRankError):
    """DB の読み書き失敗."""

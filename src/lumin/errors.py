"""lumin で使用する例外階層。"""

from __future__ import annotations

from pathlib import Path


class LuminError(Exception):
    """lumin が送出する例外の基底クラス。"""


class ConfigError(LuminError):
    """設定値が不正な場合に送出される例外。"""


class BuildError(LuminError):
    """ビルドパス全体を中断させる例外。"""


class DiscoveryError(BuildError):
    """ソースディレクトリを列挙できなかった場合の例外。"""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"ディレクトリを読み取れません: {path} ({reason})")


class ProcessingError(BuildError):
    """プロセッサの process / flush が失敗した場合の例外。"""

    def __init__(self, source: Path | str, reason: str) -> None:
        self.source = source
        self.reason = reason
        super().__init__(f"処理に失敗しました: {source} ({reason})")


class UrlResolutionError(BuildError):
    """リソースのパスがビルドルート配下にない場合の例外。"""

    def __init__(self, path: Path, root: Path) -> None:
        self.path = path
        self.root = root
        super().__init__(f"{path} はビルドルート {root} の配下にありません")

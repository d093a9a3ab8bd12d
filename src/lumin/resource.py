"""ビルド成果物 (Resource) と出力 URL の解決。"""

from __future__ import annotations

import mimetypes
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Union

from .errors import UrlResolutionError


@dataclass(frozen=True, slots=True)
class UseOriginalPath:
    """ソースパスをそのまま出力 URL に用いるロケーター。"""


@dataclass(frozen=True, slots=True)
class Filepath:
    """拡張子の書き換えなど、置き換え後のパスから URL を求めるロケーター。"""

    path: Path


@dataclass(frozen=True, slots=True)
class Absolute:
    """正規化せずにそのまま使う URL 文字列。"""

    url: str


OutputLocator = Union[UseOriginalPath, Filepath, Absolute]


@dataclass(frozen=True, slots=True)
class Resource:
    """1 つの入力パスを処理した結果。"""

    original_path: Path
    contents: bytes = b""
    locator: OutputLocator = field(default_factory=UseOriginalPath)

    @property
    def output_path(self) -> PurePosixPath | Path:
        locator = self.locator
        if isinstance(locator, Filepath):
            return locator.path
        if isinstance(locator, Absolute):
            return PurePosixPath(locator.url)
        return self.original_path

    def url(self, root: Path) -> str:
        """ビルドルートを基準にした出力 URL を返します。"""

        return resolve_url(self, root)

    def content_type(self) -> str:
        guessed, _ = mimetypes.guess_type(self.output_path.name)
        return guessed or "text/plain"


def resolve_url(resource: Resource, root: Path) -> str:
    """ロケーターの種類に応じて Resource の URL を求めます。"""

    locator = resource.locator
    if isinstance(locator, Absolute):
        return locator.url
    file_path = locator.path if isinstance(locator, Filepath) else resource.original_path
    try:
        relative = file_path.relative_to(root)
    except ValueError as exc:
        raise UrlResolutionError(file_path, root) from exc
    return relative.as_posix()

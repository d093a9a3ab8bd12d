"""ビルドルート配下のソースファイル探索。"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Collection

from .config import EXTENSIONS
from .errors import DiscoveryError

logger = logging.getLogger(__name__)


def walk(root: Path, extensions: Collection[str] = EXTENSIONS) -> list[Path]:
    """認識対象の拡張子を持つファイルを再帰的に列挙します。

    ディレクトリは常に辿りますが、シンボリックリンク先のディレクトリは辿りません。
    読み取れないディレクトリがあればビルド全体を中断させるため ``DiscoveryError``
    を送出します。戻り値の順序は不定です。
    """

    wanted = {ext.lower().lstrip(".") for ext in extensions}
    found: list[Path] = []
    _walk_into(Path(root), wanted, found)
    return found


def _walk_into(directory: Path, wanted: set[str], found: list[Path]) -> None:
    try:
        with os.scandir(directory) as entries:
            children = list(entries)
    except OSError as exc:
        raise DiscoveryError(directory, exc.strerror or str(exc)) from exc

    for entry in children:
        path = Path(entry.path)
        try:
            is_dir = entry.is_dir(follow_symlinks=False)
        except OSError as exc:
            raise DiscoveryError(path, exc.strerror or str(exc)) from exc
        if is_dir:
            _walk_into(path, wanted, found)
            continue
        if path.suffix.lower().lstrip(".") not in wanted:
            continue
        logger.debug("ソースファイルを検出しました: %s", path)
        found.append(path)

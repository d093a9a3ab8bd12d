"""出力 URL をキーにしたスレッドセーフな成果物ストア。"""

from __future__ import annotations

import logging
import threading
from typing import Iterator

from .resource import Resource

logger = logging.getLogger(__name__)


class Store:
    """URL から Resource を引くマップ。世代ごと丸ごと差し替えられます。

    読み取りはロック下で現在の辞書を参照するだけなので、``replace`` と並行した
    ``get`` は必ず旧世代か新世代のどちらか一方だけを観測します。
    """

    def __init__(self) -> None:
        self._entries: dict[str, Resource] = {}
        self._lock = threading.Lock()

    def put(self, url: str, resource: Resource) -> None:
        """Resource を登録します。内容が空の場合は何もしません。"""

        if not resource.contents:
            return
        logger.debug("ストアへ登録します: %s (%d bytes)", url, len(resource.contents))
        with self._lock:
            self._entries[url] = resource

    def get(self, url: str) -> Resource | None:
        with self._lock:
            return self._entries.get(url)

    def replace(self, other: "Store") -> None:
        """``other`` の内容と現在の世代を入れ替えます。

        ロックを保持するのは参照の交換のみで、``other`` には旧世代が残ります。
        """

        if other is self:
            return
        with other._lock:
            incoming = other._entries
            other._entries = {}
        with self._lock:
            outgoing = self._entries
            self._entries = incoming
        with other._lock:
            other._entries = outgoing

    def snapshot(self) -> dict[str, Resource]:
        with self._lock:
            return dict(self._entries)

    def urls(self) -> list[str]:
        with self._lock:
            return sorted(self._entries)

    def __contains__(self, url: object) -> bool:
        with self._lock:
            return url in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self.urls())

"""再ビルド完了を購読者へ伝えるブロードキャスト。"""

from __future__ import annotations

import threading


class ChangeNotifier:
    """世代番号を用いた取りこぼし許容の通知チャネル。

    購読者は最後に観測した世代を ``wait`` に渡し、それより新しい世代が
    公開されるまで待機します。間に複数回の公開があっても最新の世代だけを受け取ります。
    """

    def __init__(self) -> None:
        self._generation = 0
        self._condition = threading.Condition()

    @property
    def generation(self) -> int:
        with self._condition:
            return self._generation

    def publish(self) -> int:
        with self._condition:
            self._generation += 1
            self._condition.notify_all()
            return self._generation

    def wait(self, after: int, timeout: float | None = None) -> int | None:
        """``after`` より新しい世代を待ちます。タイムアウト時は ``None`` を返します。"""

        with self._condition:
            ready = self._condition.wait_for(lambda: self._generation > after, timeout=timeout)
            return self._generation if ready else None

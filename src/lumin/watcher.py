"""ファイル変更の監視、デバウンス、ストアの差し替え。"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Callable

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from .errors import BuildError
from .notify import ChangeNotifier
from .store import Store

DEFAULT_DEBOUNCE = 0.25

# ビルド中のファイル読み込みで発生する opened / closed は対象外
WATCHED_EVENT_TYPES = frozenset({EVENT_TYPE_CREATED, EVENT_TYPE_DELETED, EVENT_TYPE_MODIFIED, EVENT_TYPE_MOVED})


class RebuildScheduler:
    """変更イベントをデバウンスし、1 度に 1 つだけ再ビルドを実行します。

    再ビルド中に届いたイベントは保留され、完了後にもう 1 度だけ再ビルドします。
    失敗した場合はログに記録し、配信中のストアには手を触れません。
    """

    def __init__(
        self,
        store: Store,
        rebuild: Callable[[], Store],
        *,
        debounce: float = DEFAULT_DEBOUNCE,
        notifier: ChangeNotifier | None = None,
    ) -> None:
        self._store = store
        self._rebuild = rebuild
        self._debounce = debounce
        self._notifier = notifier
        self._lock = threading.Lock()
        self._timer: threading.Timer | None = None
        self._running = False
        self._pending = False
        self._closed = False
        self._succeeded = 0
        self._failed = 0
        self._logger = logging.getLogger(self.__class__.__module__ + "." + self.__class__.__name__)

    @property
    def succeeded(self) -> int:
        with self._lock:
            return self._succeeded

    @property
    def failed(self) -> int:
        with self._lock:
            return self._failed

    def notify(self) -> None:
        """変更イベントを受け取り、デバウンス用タイマーを張り直します。"""

        with self._lock:
            if self._closed:
                return
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self._debounce, self._fire)
            self._timer.daemon = True
            self._timer.start()

    def cancel(self) -> None:
        with self._lock:
            self._closed = True
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def _fire(self) -> None:
        with self._lock:
            self._timer = None
            if self._running:
                self._pending = True
                return
            self._running = True
        try:
            while True:
                self.rebuild_now()
                with self._lock:
                    if not self._pending or self._closed:
                        self._running = False
                        return
                    self._pending = False
        except BaseException:
            with self._lock:
                self._running = False
            raise

    def rebuild_now(self) -> bool:
        """1 回ビルドし、成功すれば配信中のストアと差し替えます。"""

        self._logger.info("変更を検出したため再ビルドします。")
        try:
            fresh = self._rebuild()
        except BuildError as exc:
            with self._lock:
                self._failed += 1
            self._logger.error("再ビルドに失敗しました。直前のストアを配信し続けます: %s", exc, exc_info=exc)
            return False
        self._store.replace(fresh)
        with self._lock:
            self._succeeded += 1
        if self._notifier is not None:
            self._notifier.publish()
        return True


class _RebuildTrigger(FileSystemEventHandler):
    def __init__(self, scheduler: RebuildScheduler) -> None:
        self._scheduler = scheduler

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type not in WATCHED_EVENT_TYPES:
            return
        self._scheduler.notify()


class SiteWatcher:
    """watchdog の Observer でサイトルートを再帰的に監視します。"""

    def __init__(self, root: Path, scheduler: RebuildScheduler, observer_factory: Callable[[], Observer] = Observer) -> None:
        self._root = root
        self._scheduler = scheduler
        self._observer = observer_factory()
        self._observer.schedule(_RebuildTrigger(scheduler), str(root), recursive=True)
        self._logger = logging.getLogger(self.__class__.__module__ + "." + self.__class__.__name__)

    def start(self) -> None:
        self._observer.start()
        self._logger.info("ファイル変更の監視を開始しました: %s", self._root)

    def stop(self) -> None:
        self._scheduler.cancel()
        self._observer.stop()
        self._observer.join()
        self._logger.info("ファイル変更の監視を停止しました。")

    def __enter__(self) -> "SiteWatcher":
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

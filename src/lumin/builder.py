"""サイト全体を 1 回ビルドして新しい Store を組み立てるオーケストレーター。"""

from __future__ import annotations

import logging
import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Sequence

from .config import SiteConfig
from .errors import BuildError, ProcessingError
from .processors import Processor, default_processors
from .store import Store
from .walker import walk

ProcessorFactory = Callable[[SiteConfig], Sequence[Processor]]


@dataclass(slots=True)
class BuildResult:
    store: Store
    discovered: int
    resources: int
    elapsed: float


class SiteBuilder:
    """探索・並列ディスパッチ・逐次 flush の 2 段階ビルドを統括します。

    いずれかの段階で失敗した場合は最初のエラーを送出し、途中まで作られた
    Store は破棄されます。
    """

    def __init__(self, config: SiteConfig, processor_factory: ProcessorFactory = default_processors) -> None:
        self.config = config
        self._processor_factory = processor_factory
        self._logger = logging.getLogger(self.__class__.__module__ + "." + self.__class__.__name__)

    def build(self) -> BuildResult:
        started = time.perf_counter()
        root = self.config.root
        self._logger.info("ビルドを開始します: %s", root)

        paths = walk(root)
        self._logger.info("ソースファイルを %d 件検出しました。", len(paths))

        processors = list(self._processor_factory(self.config))
        store = Store()
        self._dispatch(paths, processors, store)
        self._flush(processors, store)

        elapsed = time.perf_counter() - started
        self._logger.info("ビルドが完了しました (%d 件, %.3f 秒)。", len(store), elapsed)
        return BuildResult(store=store, discovered=len(paths), resources=len(store), elapsed=elapsed)

    def _dispatch(self, paths: Sequence[Path], processors: Sequence[Processor], store: Store) -> None:
        if not paths:
            return
        abort = threading.Event()
        workers = self._determine_workers(len(paths))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="lumin-build") as executor:
            futures = [
                executor.submit(self._process_path, path, processors, store, abort) for path in paths
            ]
            try:
                for future in as_completed(futures):
                    future.result()
            except BaseException:
                abort.set()
                executor.shutdown(wait=False, cancel_futures=True)
                raise

    def _process_path(
        self,
        path: Path,
        processors: Sequence[Processor],
        store: Store,
        abort: threading.Event,
    ) -> None:
        if abort.is_set():
            return
        for processor in processors:
            try:
                if not processor.matches(path):
                    continue
                resource = processor.process(path)
            except BuildError:
                raise
            except Exception as exc:
                raise ProcessingError(path, str(exc) or exc.__class__.__name__) from exc
            store.put(resource.url(self.config.root), resource)
            return
        self._logger.debug("対応するプロセッサがないためスキップします: %s", path)

    def _flush(self, processors: Sequence[Processor], store: Store) -> None:
        for processor in processors:
            try:
                resources = processor.flush()
            except BuildError:
                raise
            except Exception as exc:
                raise ProcessingError(repr(processor), str(exc) or exc.__class__.__name__) from exc
            if not resources:
                continue
            self._logger.info("%r が集約リソースを %d 件出力しました。", processor, len(resources))
            for resource in resources:
                store.put(resource.url(self.config.root), resource)

    def _determine_workers(self, total: int) -> int:
        requested = self.config.max_workers
        if requested is not None and requested > 0:
            return max(1, min(total, requested))
        return max(1, min(total, os.cpu_count() or 1))


def build_site(config: SiteConfig, processor_factory: ProcessorFactory = default_processors) -> Store:
    """1 回ビルドして新しい Store を返します。"""

    return SiteBuilder(config, processor_factory).build().store

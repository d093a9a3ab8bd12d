from __future__ import annotations

import random
import threading
import time
from pathlib import Path

import pytest

from lumin.builder import SiteBuilder, build_site
from lumin.config import SiteConfig
from lumin.errors import DiscoveryError, ProcessingError, UrlResolutionError
from lumin.processors import Processor
from lumin.resource import Absolute, Resource

from conftest import POST_LIST_TEMPLATE, POST_TEMPLATE


class LabelProcessor(Processor):
    def __init__(self, label: str, suffixes: tuple[str, ...]) -> None:
        self.label = label
        self.suffixes = suffixes

    def matches(self, path: Path) -> bool:
        return path.suffix in self.suffixes

    def process(self, path: Path) -> Resource:
        time.sleep(random.uniform(0, 0.005))
        return Resource(original_path=path, contents=self.label.encode("utf-8"))


class CountingProcessor(Processor):
    """処理したファイル数を flush で出力するプロセッサ。"""

    def __init__(self) -> None:
        self.seen: list[Path] = []
        self._lock = threading.Lock()

    def matches(self, path: Path) -> bool:
        return path.suffix == ".md"

    def process(self, path: Path) -> Resource:
        time.sleep(random.uniform(0, 0.01))
        with self._lock:
            self.seen.append(path)
        return Resource(original_path=path)

    def flush(self) -> list[Resource]:
        with self._lock:
            count = len(self.seen)
        return [Resource(original_path=Path("count"), contents=str(count).encode(), locator=Absolute("count.txt"))]


class FailingProcessor(Processor):
    def matches(self, path: Path) -> bool:
        return path.name == "broken.css"

    def process(self, path: Path) -> Resource:
        raise OSError("読み込みに失敗しました")


def _touch(root: Path, *names: str) -> None:
    for name in names:
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(name, encoding="utf-8")


def test_build_site_end_to_end(tmp_path: Path, make_post) -> None:
    (tmp_path / "a.css").write_text("a { }", encoding="utf-8")
    make_post(tmp_path, "p1", "古い記事", "2023-01-01")
    make_post(tmp_path, "p2", "新しい記事", "2023-06-01")
    (tmp_path / "post.liquid").write_text(POST_TEMPLATE, encoding="utf-8")
    (tmp_path / "post_list.liquid").write_text(POST_LIST_TEMPLATE, encoding="utf-8")
    config = SiteConfig(
        root=tmp_path,
        posts_dir=Path("."),
        post_template=Path("post.liquid"),
        post_list_template=Path("post_list.liquid"),
    )

    store = build_site(config)

    assert store.urls() == ["a.css", "p1.html", "p2.html", "posts/index.html"]
    listing = store.get("posts/index.html").contents.decode("utf-8")
    assert listing.index("新しい記事") < listing.index("古い記事")
    assert "<title>古い記事</title>" in store.get("p1.html").contents.decode("utf-8")
    assert store.get("post.liquid") is None


def test_build_default_layout(site_root: Path) -> None:
    result = SiteBuilder(SiteConfig(root=site_root)).build()

    assert result.store.urls() == [
        "index.html",
        "posts/first.html",
        "posts/index.html",
        "posts/second.html",
        "style.css",
    ]
    assert result.resources == 5
    assert result.discovered == 7


def test_first_matching_processor_wins(tmp_path: Path) -> None:
    names = [f"file-{index}.css" for index in range(40)]
    _touch(tmp_path, *names)
    processors = [LabelProcessor("first", (".css",)), LabelProcessor("second", (".css", ".md"))]

    store = build_site(SiteConfig(root=tmp_path, max_workers=8), lambda config: processors)

    assert {store.get(name).contents for name in names} == {b"first"}


def test_unmatched_paths_are_skipped(tmp_path: Path) -> None:
    _touch(tmp_path, "a.css", "b.md", "c.png")

    store = build_site(SiteConfig(root=tmp_path), lambda config: [LabelProcessor("css", (".css",))])

    assert store.urls() == ["a.css"]


def test_flush_sees_every_dispatched_file(tmp_path: Path) -> None:
    _touch(tmp_path, *(f"posts/{index}.md" for index in range(64)))
    counter = CountingProcessor()

    store = build_site(SiteConfig(root=tmp_path, max_workers=8), lambda config: [counter])

    assert store.get("count.txt").contents == b"64"
    # 空の内容は登録されない
    assert store.urls() == ["count.txt"]


def test_processing_error_aborts_build(tmp_path: Path) -> None:
    _touch(tmp_path, "broken.css", *(f"ok-{index}.css" for index in range(20)))
    processors = [FailingProcessor(), LabelProcessor("ok", (".css",))]

    with pytest.raises(ProcessingError) as excinfo:
        SiteBuilder(SiteConfig(root=tmp_path), lambda config: processors).build()

    assert excinfo.value.source == tmp_path.resolve() / "broken.css"
    assert isinstance(excinfo.value.__cause__, OSError)


def test_flush_error_aborts_build(tmp_path: Path) -> None:
    class BrokenFlush(Processor):
        def matches(self, path: Path) -> bool:
            return False

        def flush(self) -> list[Resource]:
            raise RuntimeError("集約に失敗しました")

    with pytest.raises(ProcessingError):
        build_site(SiteConfig(root=tmp_path), lambda config: [BrokenFlush()])


def test_resource_outside_root_is_fatal(tmp_path: Path) -> None:
    class Escaping(Processor):
        def matches(self, path: Path) -> bool:
            return True

        def process(self, path: Path) -> Resource:
            return Resource(original_path=Path("/outside") / path.name, contents=b"x")

    _touch(tmp_path, "a.css")

    with pytest.raises(UrlResolutionError):
        build_site(SiteConfig(root=tmp_path), lambda config: [Escaping()])


def test_missing_root_is_a_discovery_error(tmp_path: Path) -> None:
    with pytest.raises(DiscoveryError):
        build_site(SiteConfig(root=tmp_path / "missing"), lambda config: [])


def test_determine_workers_respects_config(tmp_path: Path) -> None:
    assert SiteBuilder(SiteConfig(root=tmp_path, max_workers=3))._determine_workers(10) == 3
    assert SiteBuilder(SiteConfig(root=tmp_path, max_workers=3))._determine_workers(2) == 2
    assert SiteBuilder(SiteConfig(root=tmp_path))._determine_workers(1) == 1


def test_error_in_matches_aborts_build(tmp_path: Path) -> None:
    class BrokenMatch(Processor):
        def matches(self, path: Path) -> bool:
            raise AttributeError("判定に失敗しました")

    _touch(tmp_path, "a.css")

    with pytest.raises(ProcessingError) as excinfo:
        build_site(SiteConfig(root=tmp_path), lambda config: [BrokenMatch()])

    assert isinstance(excinfo.value.__cause__, AttributeError)

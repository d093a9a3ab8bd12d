"""lumin の設定モデル群。"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Mapping, Optional

from .errors import ConfigError

EXTENSIONS: tuple[str, ...] = (
    "css",
    "html",
    "jpg",
    "jpeg",
    "woff2",
    "liquid",
    "md",
    "markdown",
    "png",
    "svg",
    "webp",
)
STATIC_EXTENSIONS: frozenset[str] = frozenset(
    {".css", ".html", ".jpg", ".jpeg", ".woff2", ".png", ".svg", ".webp"}
)
TEMPLATE_EXTENSION = ".liquid"
MARKDOWN_EXTENSIONS: frozenset[str] = frozenset({".md", ".markdown"})


@dataclass(slots=True)
class SiteConfig:
    """ビルド対象サイトのディレクトリ構成とビルド設定。"""

    root: Path
    partials_dir: Path = Path("partials")
    posts_dir: Path = Path("posts")
    post_template: Path = Path("partials/post.liquid")
    post_list_template: Path = Path("partials/post_list.liquid")
    posts_per_page: int = 10
    development: bool = False
    max_workers: int | None = None

    def __post_init__(self) -> None:
        self.root = Path(self.root).resolve()
        self.partials_dir = self._under_root(self.partials_dir)
        self.posts_dir = self._under_root(self.posts_dir)
        self.post_template = self._under_root(self.post_template)
        self.post_list_template = self._under_root(self.post_list_template)
        if self.posts_per_page < 1:
            raise ConfigError("posts_per_page には 1 以上の整数を指定してください。")

    def _under_root(self, path: Path) -> Path:
        path = Path(path)
        return path if path.is_absolute() else self.root / path


@dataclass(slots=True)
class WatchConfig:
    """ファイル監視とデバウンスの設定。"""

    enabled: bool = True
    debounce: float = 0.25


@dataclass(slots=True)
class ServerConfig:
    """HTTP 配信の設定。"""

    host: str = "127.0.0.1"
    port: int = 3000
    livereload_path: str = "/_lumin/livereload"


@dataclass(slots=True)
class AppConfig:
    """サイト・監視・配信の設定を束ねる設定。"""

    site: SiteConfig
    watch: WatchConfig = field(default_factory=WatchConfig)
    server: ServerConfig = field(default_factory=ServerConfig)

    @classmethod
    def from_args(
        cls,
        root: Path,
        *,
        development: bool = False,
        max_workers: Optional[int] = None,
        debounce: Optional[float] = None,
        watch: bool = True,
        host: Optional[str] = None,
        port: Optional[int] = None,
        site_overrides: Mapping[str, Any] | None = None,
    ) -> "AppConfig":
        root = Path(root)
        if not root.is_dir():
            raise ConfigError(f"サイトのルートディレクトリが見つかりません: {root}")
        site_kwargs: dict[str, Any] = dict(site_overrides) if site_overrides else {}
        site_kwargs["development"] = development
        if max_workers is not None:
            site_kwargs["max_workers"] = max(1, max_workers)
        site_config = SiteConfig(root=root, **site_kwargs)

        watch_config = WatchConfig(enabled=watch)
        if debounce is not None:
            watch_config = replace(watch_config, debounce=max(0.0, debounce))

        server_kwargs: dict[str, Any] = {}
        if host:
            server_kwargs["host"] = host
        if port is not None:
            server_kwargs["port"] = port
        return cls(site=site_config, watch=watch_config, server=ServerConfig(**server_kwargs))

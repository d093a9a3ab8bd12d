"""ソースファイルを Resource へ変換するプロセッサ群。"""

from __future__ import annotations

import datetime as dt
import logging
import threading
import tomllib
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Mapping, Sequence

import markdown
from charset_normalizer import from_bytes as detect_charset
from jinja2 import Environment, FileSystemLoader, Template, TemplateError

from .config import MARKDOWN_EXTENSIONS, STATIC_EXTENSIONS, TEMPLATE_EXTENSION, SiteConfig
from .errors import ProcessingError
from .highlight import Highlighter, highlight_code_blocks
from .resource import Absolute, Filepath, Resource

logger = logging.getLogger(__name__)

MARKDOWN_FEATURES = ("fenced_code", "tables")


class Processor:
    """ビルダーから一様に扱われるプロセッサの基底クラス。

    ``matches`` は副作用を持たない軽量な判定、``process`` は 1 ファイルの変換、
    ``flush`` は全ファイルの処理後に 1 度だけ呼ばれる集約出力です。
    """

    def matches(self, path: Path) -> bool:
        raise NotImplementedError

    def process(self, path: Path) -> Resource:
        raise NotImplementedError

    def flush(self) -> list[Resource]:
        return []

    def __repr__(self) -> str:
        return self.__class__.__name__


def read_source_text(path: Path) -> str:
    """ソースファイルを読み込み、UTF-8 以外は文字コードを推定して復号します。"""

    data = path.read_bytes()
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        pass
    result = detect_charset(data).best()
    if result is not None and result.encoding:
        try:
            return data.decode(result.encoding, errors="replace")
        except LookupError:
            logger.debug("未知のエンコーディング %s のため UTF-8 フォールバックを使用します。", result.encoding)
    return data.decode("utf-8", errors="replace")


def make_environment(root: Path) -> Environment:
    """サイトルートを検索パスとするテンプレート環境を作成します。"""

    return Environment(
        loader=FileSystemLoader(str(root)),
        autoescape=False,
        keep_trailing_newline=True,
    )


class StaticProcessor(Processor):
    """ファイルをそのままコピーするプロセッサ。"""

    def __init__(self, extensions: frozenset[str] = STATIC_EXTENSIONS) -> None:
        self._extensions = extensions

    def matches(self, path: Path) -> bool:
        return path.suffix.lower() in self._extensions

    def process(self, path: Path) -> Resource:
        logger.info("静的ファイルとして処理します: %s", path)
        return Resource(original_path=path, contents=path.read_bytes())


class TemplateProcessor(Processor):
    """``.liquid`` テンプレートを HTML へレンダリングします。パーシャルは対象外です。"""

    def __init__(self, config: SiteConfig, environment: Environment | None = None) -> None:
        self._root = config.root
        self._partials_dir = config.partials_dir
        self._development = config.development
        self._environment = environment or make_environment(config.root)

    def matches(self, path: Path) -> bool:
        return path.suffix == TEMPLATE_EXTENSION and not path.is_relative_to(self._partials_dir)

    def process(self, path: Path) -> Resource:
        logger.info("テンプレートを処理します: %s", path)
        template = self._environment.get_template(path.relative_to(self._root).as_posix())
        rendered = template.render(development=self._development)
        return Resource(
            original_path=path,
            contents=rendered.encode("utf-8"),
            locator=Filepath(path.with_suffix(".html")),
        )


@dataclass(slots=True)
class PostMetadata:
    """記事に付随する TOML メタデータ。"""

    title: str
    description: str
    published: dt.date

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], source: Path) -> "PostMetadata":
        errors: list[str] = []
        title = data.get("title")
        description = data.get("description")
        published = data.get("published")
        if not isinstance(title, str):
            errors.append("title は文字列で指定してください")
        if not isinstance(description, str):
            errors.append("description は文字列で指定してください")
        if not isinstance(published, dt.date):
            errors.append("published は日付または日時で指定してください")
        if errors:
            raise ProcessingError(source, "; ".join(errors))
        return cls(title=title, description=description, published=published)


@dataclass(slots=True)
class PostItem:
    """記事一覧ページに渡す 1 件分の情報。"""

    filename: str
    title: str
    description: str
    published: str


class PostsProcessor(Processor):
    """Markdown の記事を HTML 化し、flush 時に記事一覧ページを生成します。"""

    def __init__(
        self,
        config: SiteConfig,
        environment: Environment | None = None,
        highlighter: Highlighter | None = None,
    ) -> None:
        self._posts_dir = config.posts_dir
        self._post_template_path = config.post_template
        self._post_list_template_path = config.post_list_template
        self._posts_per_page = config.posts_per_page
        self._development = config.development
        environment = environment or make_environment(config.root)
        self._post_template = _load_template(environment, config.root, config.post_template)
        self._post_list_template = _load_template(environment, config.root, config.post_list_template)
        self._highlighter = highlighter or Highlighter()
        self._posts: list[PostItem] = []
        self._posts_lock = threading.Lock()

    def matches(self, path: Path) -> bool:
        if path == self._post_template_path or path == self._post_list_template_path:
            return True
        return path.is_relative_to(self._posts_dir) and path.suffix.lower() in MARKDOWN_EXTENSIONS

    def process(self, path: Path) -> Resource:
        if path == self._post_template_path or path == self._post_list_template_path:
            return Resource(original_path=path)

        logger.info("記事を処理します: %s", path)
        html = markdown.markdown(read_source_text(path), extensions=list(MARKDOWN_FEATURES))
        meta = self._load_metadata(path)
        published = meta.published.isoformat()
        rendered = self._post_template.render(
            contents=html,
            post_title=meta.title,
            post_published=published,
            development=self._development,
        )
        contents = highlight_code_blocks(rendered, self._highlighter)

        new_path = path.with_suffix(".html")
        with self._posts_lock:
            self._posts.append(
                PostItem(
                    filename=new_path.name,
                    title=meta.title,
                    description=meta.description,
                    published=published,
                )
            )
        return Resource(original_path=path, contents=contents.encode("utf-8"), locator=Filepath(new_path))

    def flush(self) -> list[Resource]:
        with self._posts_lock:
            posts, self._posts = self._posts, []
        posts.sort(key=lambda post: post.published, reverse=True)

        size = self._posts_per_page
        chunks = [posts[start : start + size] for start in range(0, len(posts), size)]
        return [
            self._render_post_list(index, index == len(chunks) - 1, chunk)
            for index, chunk in enumerate(chunks)
        ]

    def _load_metadata(self, path: Path) -> PostMetadata:
        meta_path = path.with_suffix(".toml")
        try:
            data = tomllib.loads(read_source_text(meta_path))
        except tomllib.TOMLDecodeError as exc:
            raise ProcessingError(meta_path, f"TOML の解析に失敗しました ({exc})") from exc
        return PostMetadata.from_mapping(data, meta_path)

    def _render_post_list(self, index: int, last: bool, posts: Sequence[PostItem]) -> Resource:
        url = "posts/index.html" if index == 0 else f"posts/posts-{index}.html"
        if index == 0:
            previous = ""
        elif index == 1:
            previous = "/posts/index.html"
        else:
            previous = f"/posts/posts-{index - 1}.html"
        following = "" if last else f"posts-{index + 1}.html"

        rendered = self._post_list_template.render(
            posts=[asdict(post) for post in posts],
            previous=previous,
            next=following,
            development=self._development,
        )
        return Resource(
            original_path=self._post_list_template_path,
            contents=rendered.encode("utf-8"),
            locator=Absolute(url),
        )


def _load_template(environment: Environment, root: Path, path: Path) -> Template:
    try:
        return environment.get_template(path.relative_to(root).as_posix())
    except (TemplateError, ValueError) as exc:
        raise ProcessingError(path, f"テンプレートを読み込めません ({exc})") from exc


def default_processors(config: SiteConfig) -> list[Processor]:
    """登録順に意味を持つ既定のプロセッサ列を返します。"""

    environment = make_environment(config.root)
    return [
        PostsProcessor(config, environment),
        StaticProcessor(),
        TemplateProcessor(config, environment),
    ]

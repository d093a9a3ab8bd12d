from __future__ import annotations

from pathlib import Path

import pytest

POST_TEMPLATE = "<html><head><title>{{ post_title }}</title></head><body><time>{{ post_published }}</time>{{ contents }}</body></html>\n"
POST_LIST_TEMPLATE = (
    "<ul>{% for post in posts %}<li><a href=\"{{ post.filename }}\">{{ post.title }}</a> {{ post.published }}</li>{% endfor %}</ul>"
    "<nav>{{ previous }}|{{ next }}</nav>\n"
)


def write_post(directory: Path, stem: str, title: str, published: str, body: str = "本文です。") -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    source = directory / f"{stem}.md"
    source.write_text(f"# {title}\n\n{body}\n", encoding="utf-8")
    (directory / f"{stem}.toml").write_text(
        f'title = "{title}"\ndescription = "{title} の概要"\npublished = {published}\n',
        encoding="utf-8",
    )
    return source


@pytest.fixture
def site_root(tmp_path: Path) -> Path:
    """既定のディレクトリ構成を持つ最小限のサイト。"""

    root = tmp_path / "site"
    partials = root / "partials"
    partials.mkdir(parents=True)
    (partials / "post.liquid").write_text(POST_TEMPLATE, encoding="utf-8")
    (partials / "post_list.liquid").write_text(POST_LIST_TEMPLATE, encoding="utf-8")
    (partials / "header.liquid").write_text("<header>lumin</header>", encoding="utf-8")
    (root / "style.css").write_text("body { color: black; }", encoding="utf-8")
    (root / "index.liquid").write_text(
        '{% include "partials/header.liquid" %}{% if development %}<script src="/reload.js"></script>{% endif %}\n',
        encoding="utf-8",
    )
    write_post(root / "posts", "first", "最初の記事", "2023-01-01")
    write_post(root / "posts", "second", "二番目の記事", "2023-02-01")
    return root


@pytest.fixture
def make_post():
    return write_post

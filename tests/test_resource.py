from __future__ import annotations

from pathlib import Path

import pytest

from lumin.errors import UrlResolutionError
from lumin.resource import Absolute, Filepath, Resource, resolve_url


def test_use_original_path_is_relative_to_root() -> None:
    resource = Resource(original_path=Path("/site/a/b.css"), contents=b"x")

    assert resolve_url(resource, Path("/site")) == "a/b.css"


def test_filepath_uses_replacement_path() -> None:
    resource = Resource(
        original_path=Path("/site/post.md"),
        contents=b"x",
        locator=Filepath(Path("/site/post.html")),
    )

    assert resource.url(Path("/site")) == "post.html"


def test_absolute_url_is_used_verbatim() -> None:
    resource = Resource(
        original_path=Path("/elsewhere/list.liquid"),
        contents=b"x",
        locator=Absolute("posts/index.html"),
    )

    assert resource.url(Path("/site")) == "posts/index.html"


def test_path_outside_root_is_rejected() -> None:
    resource = Resource(original_path=Path("/other/a.css"), contents=b"x")

    with pytest.raises(UrlResolutionError):
        resource.url(Path("/site"))


def test_content_type_follows_output_path() -> None:
    rendered = Resource(
        original_path=Path("/site/page.liquid"),
        contents=b"<p></p>",
        locator=Filepath(Path("/site/page.html")),
    )
    listing = Resource(original_path=Path("/site/x.liquid"), contents=b"x", locator=Absolute("posts/posts-2.html"))
    unknown = Resource(original_path=Path("/site/data.unknownext"), contents=b"x")

    assert rendered.content_type() == "text/html"
    assert listing.content_type() == "text/html"
    assert Resource(original_path=Path("/site/a.css"), contents=b"x").content_type() == "text/css"
    assert unknown.content_type() == "text/plain"

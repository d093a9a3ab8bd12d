"""Pygments によるコードブロックのシンタックスハイライト。"""

from __future__ import annotations

import logging
import threading

from bs4 import BeautifulSoup, Tag
from pygments import highlight as render_tokens
from pygments.formatters import HtmlFormatter
from pygments.lexer import Lexer
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

logger = logging.getLogger(__name__)

CODE_LISTING_CLASS = "code-listing"
LANGUAGE_PREFIX = "language-"


class Highlighter:
    """複数スレッドから共有されるハイライタ。1 回の呼び出しごとにロックを取得します。"""

    def __init__(self) -> None:
        self._formatter = HtmlFormatter(nowrap=True)
        self._lexers: dict[str, Lexer | None] = {}
        self._lock = threading.Lock()

    def supported(self, language: str) -> bool:
        if not language:
            return False
        with self._lock:
            return self._lexer(language) is not None

    def highlight(self, language: str, code: str) -> str:
        """``code`` をトークン単位の ``<span>`` 列に変換します。"""

        with self._lock:
            lexer = self._lexer(language)
            if lexer is None:
                raise ValueError(f"未対応の言語です: {language}")
            return render_tokens(code, lexer, self._formatter)

    def _lexer(self, language: str) -> Lexer | None:
        key = language.lower()
        if key not in self._lexers:
            try:
                self._lexers[key] = get_lexer_by_name(key, stripnl=False)
            except ClassNotFound:
                self._lexers[key] = None
        return self._lexers[key]


def highlight_code_blocks(html: str, highlighter: Highlighter) -> str:
    """``<pre><code class="language-X">`` ブロックを ``code-listing`` 形式へ書き換えます。

    対応言語であれば Pygments のトークンで装飾し、それ以外はコードをそのまま残します。
    """

    soup = BeautifulSoup(html, "html.parser")
    blocks = [pre for pre in soup.find_all("pre") if _is_plain_code_block(pre)]
    if not blocks:
        return html

    for pre in blocks:
        code = pre.find("code", recursive=False)
        language = _language_of(code)
        logger.debug("コードブロックを検出しました (language=%s)", language or "-")
        if highlighter.supported(language):
            rendered = highlighter.highlight(language, code.get_text())
            fragment = BeautifulSoup(rendered, "html.parser")
            code.clear()
            for node in list(fragment.contents):
                code.append(node)
        if "class" in code.attrs:
            del code["class"]
        for node in list(pre.contents):
            if node is not code:
                node.extract()
        pre["class"] = CODE_LISTING_CLASS
    return str(soup)


def _is_plain_code_block(pre: Tag) -> bool:
    if pre.get("class"):
        return False
    children = [node for node in pre.contents if not (isinstance(node, str) and not node.strip())]
    return len(children) == 1 and isinstance(children[0], Tag) and children[0].name == "code"


def _language_of(code: Tag) -> str:
    for css_class in code.get("class") or ():
        if css_class.startswith(LANGUAGE_PREFIX):
            return css_class[len(LANGUAGE_PREFIX) :]
    return ""

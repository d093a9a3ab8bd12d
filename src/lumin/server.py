"""配信中の Store を HTTP で公開するサーバー。"""

from __future__ import annotations

import logging
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from urllib.parse import unquote, urlsplit

from .config import ServerConfig
from .notify import ChangeNotifier
from .resource import Resource
from .store import Store

logger = logging.getLogger(__name__)

KEEP_ALIVE_INTERVAL = 15.0


def lookup_keys(request_path: str) -> list[str]:
    """リクエストパスから Store を引くキーの候補を優先順に返します。"""

    key = unquote(urlsplit(request_path).path).lstrip("/")
    if not key or key.endswith("/"):
        return [key + "index.html"]
    return [key, key + "/index.html"]


def find_resource(store: Store, request_path: str) -> Resource | None:
    for key in lookup_keys(request_path):
        resource = store.get(key)
        if resource is not None:
            return resource
    return None


def make_handler(
    store: Store,
    notifier: ChangeNotifier | None = None,
    config: ServerConfig | None = None,
) -> type[BaseHTTPRequestHandler]:
    """Store を参照するリクエストハンドラクラスを生成します。

    ``notifier`` を渡した場合のみライブリロード用のイベントストリームを公開します。
    """

    server_config = config or ServerConfig()

    class StoreRequestHandler(BaseHTTPRequestHandler):
        server_version = "lumin"
        protocol_version = "HTTP/1.1"

        def do_GET(self) -> None:
            if notifier is not None and urlsplit(self.path).path == server_config.livereload_path:
                self._stream_changes()
                return
            self._send_resource(include_body=True)

        def do_HEAD(self) -> None:
            self._send_resource(include_body=False)

        def log_message(self, format: str, *args: object) -> None:
            logger.info("%s - %s", self.address_string(), format % args)

        def _send_resource(self, include_body: bool) -> None:
            resource = find_resource(store, self.path)
            if resource is None:
                body = b"not found\n"
                self.send_response(HTTPStatus.NOT_FOUND)
                self.send_header("Content-Type", "text/plain; charset=utf-8")
                self.send_header("Content-Length", str(len(body)))
                self.end_headers()
                if include_body:
                    self.wfile.write(body)
                return
            self.send_response(HTTPStatus.OK)
            self.send_header("Content-Type", resource.content_type())
            self.send_header("Content-Length", str(len(resource.contents)))
            self.end_headers()
            if include_body:
                self.wfile.write(resource.contents)

        def _stream_changes(self) -> None:
            seen = notifier.generation
            self.send_response(HTTPStatus.OK)
            self.send_header("Content-Type", "text/event-stream")
            self.send_header("Cache-Control", "no-cache")
            self.send_header("Connection", "close")
            self.end_headers()
            self.close_connection = True
            try:
                while True:
                    generation = notifier.wait(seen, timeout=KEEP_ALIVE_INTERVAL)
                    if generation is None:
                        self.wfile.write(b": keep-alive\n\n")
                    else:
                        seen = generation
                        self.wfile.write(b"data: reload\n\n")
                    self.wfile.flush()
            except (BrokenPipeError, ConnectionResetError):
                logger.debug("ライブリロードの購読者が切断しました。")

    return StoreRequestHandler


def create_server(
    store: Store,
    config: ServerConfig,
    notifier: ChangeNotifier | None = None,
) -> ThreadingHTTPServer:
    server = ThreadingHTTPServer((config.host, config.port), make_handler(store, notifier, config))
    # ライブリロードの接続は終了を待たない
    server.block_on_close = False
    return server

"""lumin のコマンドラインインターフェース。"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Iterable

from .builder import SiteBuilder, build_site
from .config import AppConfig
from .errors import BuildError, ConfigError
from .notify import ChangeNotifier
from .server import create_server
from .store import Store
from .watcher import RebuildScheduler, SiteWatcher

logger = logging.getLogger(__name__)


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="静的サイトをビルドし、変更を監視しながらメモリ上から配信します")
    parser.add_argument("root", nargs="?", type=Path, default=Path.cwd(), help="サイトのルートディレクトリ (省略時はカレントディレクトリ)")
    parser.add_argument("--host", dest="host", type=str, default=None, help="待ち受けるホスト名")
    parser.add_argument("--port", dest="port", type=int, default=None, help="待ち受けるポート番号")
    parser.add_argument("--dev", dest="development", action="store_true", help="開発モード (テンプレートへの development フラグとライブリロード)")
    parser.add_argument("--debounce", dest="debounce", type=float, default=None, help="変更イベントをまとめる待機時間 (秒)")
    parser.add_argument("--workers", dest="workers", type=int, default=None, help="ファイル処理の並列数 (省略時は CPU 数)")
    parser.add_argument("--no-watch", dest="no_watch", action="store_true", help="ファイル変更を監視しない")
    parser.add_argument("--build-only", dest="build_only", action="store_true", help="1 回だけビルドして結果の概要を出力する")
    parser.add_argument("--verbose", dest="verbose", action="store_true", help="進捗ログを表示")
    parser.add_argument("--debug", dest="debug", action="store_true", help="デバッグログを表示")

    layout_group = parser.add_argument_group("サイト構成")
    layout_group.add_argument("--posts-dir", dest="posts_dir", type=Path, default=None, help="記事 Markdown を置くディレクトリ (ルートからの相対パス)")
    layout_group.add_argument("--partials-dir", dest="partials_dir", type=Path, default=None, help="直接出力しないパーシャルテンプレートのディレクトリ")
    layout_group.add_argument("--post-template", dest="post_template", type=Path, default=None, help="記事ページのテンプレート")
    layout_group.add_argument("--post-list-template", dest="post_list_template", type=Path, default=None, help="記事一覧ページのテンプレート")
    layout_group.add_argument("--posts-per-page", dest="posts_per_page", type=int, default=None, help="記事一覧 1 ページあたりの件数")
    return parser.parse_args(list(argv) if argv is not None else None)


def main(argv: Iterable[str] | None = None) -> None:
    args = parse_args(argv)
    _validate_args(args)
    _configure_logging(args.verbose, args.debug)
    try:
        config = AppConfig.from_args(
            args.root,
            development=args.development,
            max_workers=args.workers,
            debounce=args.debounce,
            watch=not args.no_watch,
            host=args.host,
            port=args.port,
            site_overrides=_collect_site_overrides(args),
        )
    except ConfigError as exc:
        print(f"[エラー] {exc}", file=sys.stderr)
        raise SystemExit(2)

    try:
        result = SiteBuilder(config.site).build()
    except BuildError as exc:
        print(f"[エラー] 初回ビルドに失敗しました: {exc}", file=sys.stderr)
        raise SystemExit(1)

    if args.build_only:
        summary = {
            "root": str(config.site.root),
            "resources": result.resources,
            "elapsed": round(result.elapsed, 3),
        }
        print(json.dumps(summary, ensure_ascii=False))
        return

    serve(config, result.store)


def serve(config: AppConfig, store: Store) -> None:
    """ストアを配信し、必要に応じてファイル変更を監視します。"""

    notifier = ChangeNotifier() if config.site.development else None
    server = create_server(store, config.server, notifier)
    watcher: SiteWatcher | None = None
    if config.watch.enabled:
        scheduler = RebuildScheduler(
            store,
            lambda: build_site(config.site),
            debounce=config.watch.debounce,
            notifier=notifier,
        )
        watcher = SiteWatcher(config.site.root, scheduler)
        watcher.start()

    host, port = server.server_address[:2]
    print(f"http://{host}:{port}/ で配信しています (Ctrl+C で停止)")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("停止要求を受け取りました。")
    finally:
        server.server_close()
        if watcher is not None:
            watcher.stop()


def _validate_args(args: argparse.Namespace) -> None:
    errors: list[str] = []
    if not args.root.exists():
        errors.append(f"[エラー] ルートディレクトリが見つかりません: {args.root}")
    elif not args.root.is_dir():
        errors.append(f"[エラー] ルートパスはディレクトリではありません: {args.root}")

    if args.port is not None and not 0 <= args.port <= 65535:
        errors.append("[エラー] --port には 0 から 65535 の整数を指定してください。")
    if args.debounce is not None and args.debounce < 0:
        errors.append("[エラー] --debounce には 0 以上の数値を指定してください。")
    if args.workers is not None and args.workers < 1:
        errors.append("[エラー] --workers には 1 以上の整数を指定してください。")
    if args.posts_per_page is not None and args.posts_per_page < 1:
        errors.append("[エラー] --posts-per-page には 1 以上の整数を指定してください。")

    if errors:
        for message in errors:
            print(message, file=sys.stderr)
        raise SystemExit(2)

    args.root = args.root.resolve()


def _collect_site_overrides(args: argparse.Namespace) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    if args.posts_dir is not None:
        overrides["posts_dir"] = args.posts_dir
    if args.partials_dir is not None:
        overrides["partials_dir"] = args.partials_dir
    if args.post_template is not None:
        overrides["post_template"] = args.post_template
    if args.post_list_template is not None:
        overrides["post_list_template"] = args.post_list_template
    if args.posts_per_page is not None:
        overrides["posts_per_page"] = args.posts_per_page
    return overrides


def _configure_logging(verbose: bool, debug: bool = False) -> None:
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, format="%(asctime)s [%(levelname)s] %(message)s", datefmt="%Y-%m-%d %H:%M:%S")


if __name__ == "__main__":
    main()

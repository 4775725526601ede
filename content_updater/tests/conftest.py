"""
Общие фикстуры: локальный сервер контента и дерево dist
"""

import json
import logging
import threading
from http.server import ThreadingHTTPServer, SimpleHTTPRequestHandler
from pathlib import Path
from typing import Dict
from urllib.parse import urlparse

import pytest


class ContentServer:
    """Состояние тестового сервера: файлы, журнал запросов, сбойные пути"""

    def __init__(self, root: Path):
        self.root = root
        self.requests = []
        self.fail_paths = set()
        self.empty_paths = set()
        self.url = ""

    def write(self, relative: str, data):
        path = self.root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(data, str):
            data = data.encode("utf-8")
        path.write_bytes(data)

    def write_json(self, relative: str, obj):
        self.write(relative, json.dumps(obj))

    def remove(self, relative: str):
        (self.root / relative).unlink()


def _make_handler(state: ContentServer):
    class Handler(SimpleHTTPRequestHandler):
        def __init__(self, *args, **kwargs):
            super().__init__(*args, directory=str(state.root), **kwargs)

        def do_GET(self):
            path = urlparse(self.path).path
            state.requests.append(path)

            if path in state.fail_paths:
                self.send_error(500, "Injected failure")
                return
            if path in state.empty_paths:
                self.send_response(200)
                self.send_header("Content-Length", "0")
                self.end_headers()
                return
            super().do_GET()

        def log_message(self, format, *args):
            pass

    return Handler


@pytest.fixture
def content_server(tmp_path):
    state = ContentServer(tmp_path / "remote")
    state.root.mkdir()

    server = ThreadingHTTPServer(("127.0.0.1", 0), _make_handler(state))
    state.url = f"http://127.0.0.1:{server.server_address[1]}"
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()

    yield state

    server.shutdown()
    server.server_close()


@pytest.fixture
def dist_dir(tmp_path) -> Path:
    """Путь dist внутри отдельного каталога, чтобы видеть все служебные соседние пути"""
    app_dir = tmp_path / "app"
    app_dir.mkdir()
    return app_dir / "dist"


@pytest.fixture
def restore_root_logging():
    root_logger = logging.getLogger()
    handlers = root_logger.handlers[:]
    level = root_logger.level
    yield
    root_logger.handlers[:] = handlers
    root_logger.setLevel(level)


def publish_site(server: ContentServer, version: str, **extra_manifest):
    """Типичный удаленный сайт: книга с картинками, index.html и CSS"""
    manifest = {
        "version": version,
        "books": [
            {
                "id": 1,
                "cover": "cover.png",
                "content": [
                    {"type": "image", "src": "page1.png"},
                    {"type": "video", "src": "/media/intro.mp4"},
                    {"type": "paragraph", "text": ""},
                ],
            }
        ],
    }
    manifest.update(extra_manifest)
    server.write_json("content.json", manifest)
    server.write("books/1/cover.png", f"cover-{version}")
    server.write("books/1/page1.png", f"page1-{version}")
    server.write("media/intro.mp4", f"video-{version}" * 100)
    server.write(
        "index.html",
        '<html><head><link rel="stylesheet" href="/assets/app.css">'
        '<script src="/assets/app.js"></script></head>'
        '<body><a href="https://example.com/elsewhere">x</a></body></html>',
    )
    server.write("assets/app.css", "body { background: url('/img/bg.png'); }")
    server.write("assets/app.js", f"console.log('{version}')")
    server.write("img/bg.png", "background")
    return manifest


def snapshot(root: Path) -> Dict[str, bytes]:
    """Содержимое всех файлов дерева по относительным путям"""
    if not root.exists():
        return {}
    return {
        str(path.relative_to(root)): path.read_bytes()
        for path in sorted(root.rglob("*"))
        if path.is_file()
    }

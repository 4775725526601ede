"""
Командная строка: проверка и применение обновления контента
"""

import argparse
import logging
import signal
from typing import Optional, List

from rich.console import Console

from .config import UpdaterConfig
from .core.errors import UpdaterError, SwapError
from .core.types import CancellationToken, ProgressEvent
from .core.update_manager import ContentUpdater
from .logging_setup import setup_logging

console = Console()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="content-updater",
        description="Обновление дерева контента из удаленного content.json",
    )
    parser.add_argument("--config", help="YAML файл с секцией content_updater")
    parser.add_argument("--log-dir", help="Директория для файлов логов")
    parser.add_argument("--verbose", action="store_true", help="Подробные логи")

    subparsers = parser.add_subparsers(dest="command", required=True)
    for name, help_text in (("check", "Проверить наличие обновления"),
                            ("run", "Скачать и применить обновление")):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("--dist", required=True, help="Каталог с текущим контентом")
        sub.add_argument("--url", help="Базовый URL удаленного контента")
    return parser


def _print_progress(event: ProgressEvent):
    if event.percent is None:
        console.print(f"[blue]{event.message}[/blue]")
    else:
        console.print(f"[green]{event.percent:5.1f}%[/green] {event.message}")


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    setup_logging(args.log_dir, logging.DEBUG if args.verbose else logging.WARNING)

    config = UpdaterConfig.from_yaml(args.config) if args.config else UpdaterConfig.from_env()
    updater = ContentUpdater(config)
    base_url = args.url or config.remote_base_url

    if args.command == "check":
        try:
            result = updater.check(args.dist, base_url)
        except UpdaterError as e:
            console.print(f"[bold red]❌ {e}[/bold red]")
            return 1
        status = "[bold green]доступно[/bold green]" if result.available else "не требуется"
        console.print(f"Локальная версия: {result.local_version}")
        console.print(f"Удаленная версия: {result.remote_version}")
        console.print(f"Обновление: {status}")
        return 0

    cancel_token = CancellationToken()
    previous_handler = signal.signal(signal.SIGINT, lambda signum, frame: cancel_token.cancel())

    try:
        result = updater.run(args.dist, base_url, _print_progress, cancel_token)
    except SwapError as e:
        console.print(f"[bold red]❌ {e}[/bold red]")
        return 2 if e.requires_manual_intervention else 1
    except UpdaterError as e:
        console.print(f"[bold red]❌ {e}[/bold red]")
        return 1
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    if result.updated:
        console.print(f"[bold green]✅ Обновлено: {result.local_version} -> {result.remote_version}[/bold green]")
    else:
        console.print(f"[yellow]Обновление не требуется ({result.reason})[/yellow]")
    return 0

"""
Content Updater - обновление дерева контента из удаленного манифеста

Модуль предоставляет:
- Проверку наличия обновления (check_for_update)
- Скачивание изменений во временное дерево с прогрессом по фазам
- Атомарную подмену дерева через два rename с откатом (run_updater)
"""

from .config import UpdaterConfig
from .core.errors import (
    UpdaterError, FetchError, ParseError, DownloadError, SwapError,
    UpdateCancelledError, UpdateInProgressError,
)
from .core.types import (
    FileDescriptor, Manifest, ProgressEvent, UpdateCheckResult,
    UpdateResult, UpdatePhase, SwapState, CancellationToken,
)
from .core.session import UpdateSession, UpdateLock
from .core.update_manager import ContentUpdater, check_for_update, run_updater

__all__ = [
    'UpdaterConfig',
    'UpdaterError',
    'FetchError',
    'ParseError',
    'DownloadError',
    'SwapError',
    'UpdateCancelledError',
    'UpdateInProgressError',
    'FileDescriptor',
    'Manifest',
    'ProgressEvent',
    'UpdateCheckResult',
    'UpdateResult',
    'UpdatePhase',
    'SwapState',
    'CancellationToken',
    'UpdateSession',
    'UpdateLock',
    'ContentUpdater',
    'check_for_update',
    'run_updater',
]
__version__ = '1.0.0'

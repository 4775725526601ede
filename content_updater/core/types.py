"""
Типы данных для модуля обновления контента
"""

import threading
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List, Callable

from .errors import UpdateCancelledError


class UpdatePhase(Enum):
    """Фазы сессии обновления"""
    IDLE = "idle"                    # Сессия создана
    ANALYZE = "analyze"              # Анализ манифестов
    CREATE_FOLDERS = "create"        # Подготовка папок во временном дереве
    DOWNLOAD = "download"            # Скачивание файлов
    ENRICHMENT = "enrichment"        # Дополнительные ассеты (аудио)
    SWAP = "swap"                    # Сборка и подмена дерева
    COMPLETED = "completed"
    FAILED = "failed"


class SwapState(Enum):
    """Состояния атомарной подмены"""
    BUILDING = "building"
    STAGED = "staged"
    SWAPPING = "swapping"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"
    FAILED = "failed"                # Откат не удался


@dataclass
class FileDescriptor:
    """Единица работы для скачивания"""
    url: str
    relative_path: str
    size: Optional[int] = None


@dataclass
class Manifest:
    """Разобранный content.json"""
    version: Optional[str]
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> 'Manifest':
        if not isinstance(data, dict):
            data = {}
        version = data.get("version")
        # Версия - непрозрачный токен, сравниваем только строки
        return cls(version=str(version) if version not in (None, "") else None, raw=data)

    @property
    def books(self) -> List[Dict[str, Any]]:
        """Все книги: плоский список books и вложенные collections[].books[]"""
        result = []
        books = self.raw.get("books")
        if isinstance(books, list):
            result.extend(b for b in books if isinstance(b, dict))

        collections = self.raw.get("collections")
        if isinstance(collections, list):
            for collection in collections:
                if not isinstance(collection, dict):
                    continue
                nested = collection.get("books")
                if isinstance(nested, list):
                    result.extend(b for b in nested if isinstance(b, dict))
        return result

    @property
    def files(self) -> List[Dict[str, Any]]:
        files = self.raw.get("files")
        if isinstance(files, list):
            return [f for f in files if isinstance(f, dict)]
        return []


@dataclass
class ProgressEvent:
    """Событие прогресса: percent=None означает статусное сообщение"""
    percent: Optional[float]
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {"percent": self.percent, "message": self.message}


ProgressListener = Callable[[ProgressEvent], None]


@dataclass
class UpdateCheckResult:
    """Результат проверки наличия обновления"""
    available: bool
    local_version: Optional[str]
    remote_version: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "available": self.available,
            "local_version": self.local_version,
            "remote_version": self.remote_version,
        }


@dataclass
class UpdateResult:
    """Результат сессии обновления"""
    updated: bool
    local_version: Optional[str]
    remote_version: Optional[str]
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "updated": self.updated,
            "local_version": self.local_version,
            "remote_version": self.remote_version,
            "reason": self.reason,
        }


class CancellationToken:
    """Сигнал отмены, проверяется между файлами и между чанками"""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self):
        if self._event.is_set():
            raise UpdateCancelledError()

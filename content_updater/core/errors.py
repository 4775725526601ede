"""
Иерархия ошибок обновления контента
"""

from typing import Optional


class UpdaterError(Exception):
    """Базовая ошибка обновления"""


class FetchError(UpdaterError):
    """Сетевая ошибка, таймаут или HTTP статус >= 400"""

    def __init__(self, url: str, cause):
        self.url = url
        self.cause = cause
        super().__init__(f"Не удалось получить {url}: {cause}")


class ParseError(UpdaterError):
    """Манифест не является корректным JSON"""

    def __init__(self, url: str, cause):
        self.url = url
        self.cause = cause
        super().__init__(f"Ошибка парсинга {url}: {cause}")


class DownloadError(UpdaterError):
    """Ошибка скачивания одного файла (включая пустой результат)"""

    def __init__(self, url: str, cause):
        self.url = url
        self.cause = cause
        super().__init__(f"Не удалось скачать {url}: {cause}")


class SwapError(UpdaterError):
    """
    Ошибка сборки или подмены дерева.

    Если откат тоже не удался, rollback_error содержит его ошибку,
    а состояние требует ручного вмешательства оператора.
    """

    def __init__(self, cause, rollback_error: Optional[BaseException] = None):
        self.cause = cause
        self.rollback_error = rollback_error
        message = f"Ошибка подмены дерева: {cause}"
        if rollback_error is not None:
            message += f"; откат не удался: {rollback_error}; требуется ручное вмешательство"
        super().__init__(message)

    @property
    def requires_manual_intervention(self) -> bool:
        return self.rollback_error is not None


class UpdateCancelledError(UpdaterError):
    """Сессия обновления отменена вызывающей стороной"""

    def __init__(self, message: str = "Обновление отменено"):
        super().__init__(message)


class UpdateInProgressError(UpdaterError):
    """Для этого distDir уже идет другая сессия обновления"""

    def __init__(self, lock_path: str, owner_pid: Optional[int] = None):
        self.lock_path = lock_path
        self.owner_pid = owner_pid
        super().__init__(f"Обновление уже выполняется (pid={owner_pid}, lock={lock_path})")

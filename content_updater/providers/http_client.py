"""
HTTP клиент для обновления контента
Потоковое скачивание с прогрессом и отменой
"""

import os
import logging
from typing import Optional, Callable

import urllib3
import urllib3.exceptions

from ..core.errors import FetchError
from ..core.types import CancellationToken

logger = logging.getLogger(__name__)

# received, total -> None; total == 0 если сервер не прислал Content-Length
ByteProgress = Callable[[int, int], None]


class UpdateHTTPClient:
    """HTTP клиент без автоматических повторов: любой сбой фатален для сессии"""

    def __init__(self, chunk_size: int = 64 * 1024):
        """
        Инициализация HTTP клиента

        Args:
            chunk_size: Размер чанка при потоковом скачивании
        """
        self.chunk_size = chunk_size
        self.http = urllib3.PoolManager(retries=False)

        logger.debug(f"HTTP клиент инициализирован: chunk_size={chunk_size}")

    def _open(self, url: str, timeout: float, preload: bool):
        try:
            response = self.http.request(
                "GET", url,
                preload_content=preload,
                timeout=urllib3.Timeout(total=timeout),
            )
        except urllib3.exceptions.HTTPError as e:
            raise FetchError(url, e) from e

        if response.status >= 400:
            if not preload:
                response.release_conn()
            raise FetchError(url, f"HTTP {response.status}: {response.reason}")
        return response

    def fetch_text(self, url: str, timeout: float, errors: str = "replace") -> str:
        """
        Получение текстового ресурса целиком

        Args:
            errors: Режим декодирования UTF-8; "strict" для данных, которые нельзя искажать

        Raises:
            FetchError: таймаут, ошибка соединения или HTTP статус >= 400
            UnicodeDecodeError: errors="strict" и тело не является UTF-8
        """
        logger.debug(f"Запрос: {url}")
        response = self._open(url, timeout, preload=True)
        return response.data.decode("utf-8", errors=errors)

    def download_file(self, url: str, dest_path: str, timeout: float,
                      on_progress: Optional[ByteProgress] = None,
                      cancel_token: Optional[CancellationToken] = None,
                      expected_size: Optional[int] = None) -> int:
        """
        Потоковое скачивание в файл

        Args:
            url: URL файла
            dest_path: Путь для сохранения (директория должна существовать)
            timeout: Таймаут операции в секундах
            on_progress: Колбэк (received, total)
            cancel_token: Проверяется между чанками; при отмене соединение закрывается
            expected_size: Размер из манифеста, если сервер не прислал Content-Length

        Returns:
            int: Количество полученных байт

        Raises:
            FetchError: Сетевая ошибка или HTTP статус >= 400
            UpdateCancelledError: Отмена во время скачивания
            OSError: Ошибка записи файла
        """
        response = self._open(url, timeout, preload=False)
        total = int(response.headers.get("Content-Length") or expected_size or 0)
        received = 0

        try:
            with open(dest_path, "wb") as f:
                for chunk in response.stream(self.chunk_size):
                    if cancel_token is not None and cancel_token.is_cancelled:
                        # Закрываем сокет, чтобы не дочитывать ответ
                        response.close()
                        cancel_token.raise_if_cancelled()
                    f.write(chunk)
                    received += len(chunk)
                    if on_progress:
                        on_progress(received, total)
        except urllib3.exceptions.HTTPError as e:
            _remove_quietly(dest_path)
            raise FetchError(url, e) from e
        except BaseException:
            _remove_quietly(dest_path)
            raise
        finally:
            response.release_conn()

        logger.debug(f"Файл скачан: {url} ({received} байт)")
        return received

    def clear(self):
        """Закрытие пула соединений"""
        self.http.clear()


def _remove_quietly(path: str):
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass

"""
Manifest Provider - получение и сравнение манифестов контента
"""

import json
import logging
from pathlib import Path
from typing import Optional, Union

from ..config import UpdaterConfig
from ..core.errors import ParseError
from ..core.types import Manifest, UpdateCheckResult
from .http_client import UpdateHTTPClient

logger = logging.getLogger(__name__)


class ManifestProvider:
    """Провайдер локального и удаленного content.json"""

    def __init__(self, config: UpdaterConfig, http_client: UpdateHTTPClient):
        self.config = config
        self.http_client = http_client

    def manifest_url(self, base_url: str) -> str:
        return f"{base_url.rstrip('/')}/{self.config.manifest_name}"

    def fetch_remote(self, base_url: str) -> Manifest:
        """
        Загрузка удаленного манифеста

        Raises:
            FetchError: Таймаут, ошибка соединения, HTTP статус >= 400
            ParseError: Ответ не является JSON в UTF-8
        """
        url = self.manifest_url(base_url)
        logger.info(f"📥 Запрос манифеста: {url}")

        try:
            raw = self.http_client.fetch_text(url, timeout=self.config.manifest_timeout, errors="strict")
            data = json.loads(raw)
        except ValueError as e:
            logger.error(f"❌ Ошибка парсинга манифеста: {e}")
            raise ParseError(url, e) from e

        if not isinstance(data, dict):
            raise ParseError(url, "корневой элемент манифеста не является объектом")

        manifest = Manifest.from_dict(data)
        self._log_structure(manifest)
        return manifest

    def read_local(self, dist_dir: Union[str, Path]) -> Optional[Manifest]:
        """
        Чтение локального манифеста

        Returns:
            Optional[Manifest]: None если файла нет или он поврежден (чистая установка)
        """
        path = Path(dist_dir) / self.config.manifest_name
        if not path.exists():
            logger.info(f"Локальный манифест не найден: {path}")
            return None

        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"⚠️ Локальный манифест не читается, считаем установку чистой: {e}")
            return None

        if not isinstance(data, dict):
            logger.warning(f"⚠️ Локальный манифест имеет неверную структуру: {path}")
            return None
        return Manifest.from_dict(data)

    @staticmethod
    def compare(local: Optional[Manifest], remote: Manifest) -> UpdateCheckResult:
        """Обновление доступно, если у удаленного есть версия и локальная отсутствует или отличается"""
        local_version = local.version if local else None
        remote_version = remote.version
        available = bool(remote_version) and (not local_version or local_version != remote_version)
        return UpdateCheckResult(
            available=available,
            local_version=local_version,
            remote_version=remote_version,
        )

    def check_for_update(self, dist_dir: Union[str, Path], base_url: str) -> UpdateCheckResult:
        """Проверка без записи на диск и без скачивания ассетов"""
        local = self.read_local(dist_dir)
        remote = self.fetch_remote(base_url)
        result = self.compare(local, remote)
        logger.info(
            f"Версии: локальная={result.local_version}, удаленная={result.remote_version}, "
            f"обновление={'доступно' if result.available else 'не требуется'}"
        )
        return result

    @staticmethod
    def _log_structure(manifest: Manifest):
        raw = manifest.raw
        if isinstance(raw.get("books"), list):
            logger.info(f"Манифест: книг {len(raw['books'])}")
        elif isinstance(raw.get("collections"), list):
            logger.info(
                f"Манифест: коллекций {len(raw['collections'])}, "
                f"книг всего {len(manifest.books)}"
            )
        else:
            logger.info("Манифест не содержит books или collections")

"""
Download Pipeline - подготовка папок и скачивание во временное дерево

Файлы скачиваются последовательно. Первая же ошибка прерывает сессию,
temp_root удаляется целиком, в dist_dir ничего не попадает.
"""

import shutil
import logging
from pathlib import Path
from typing import List, Dict, Any

from ..config import UpdaterConfig
from ..core.errors import DownloadError, UpdaterError, UpdateCancelledError
from ..core.session import UpdateSession
from ..core.types import FileDescriptor, Manifest, UpdatePhase
from .http_client import UpdateHTTPClient
from .progress_reporter import ProgressReporter, ANALYZE_MAX, CREATE_MAX, DOWNLOAD_MAX, COMPLETE

logger = logging.getLogger(__name__)


def has_narrative_text(book: Dict[str, Any]) -> bool:
    """Книга с текстом для озвучки: непустой paragraphs или элемент paragraph с текстом"""
    paragraphs = book.get("paragraphs")
    if isinstance(paragraphs, list) and paragraphs:
        return True
    content = book.get("content")
    if isinstance(content, list):
        for item in content:
            if (isinstance(item, dict) and item.get("type") == "paragraph"
                    and isinstance(item.get("text"), str) and item["text"].strip()):
                return True
    return False


class DownloadPipeline:
    """Провайдер фаз Create-folders, Download и Enrichment"""

    def __init__(self, config: UpdaterConfig, http_client: UpdateHTTPClient,
                 reporter: ProgressReporter):
        self.config = config
        self.http_client = http_client
        self.reporter = reporter

    def plan_enrichment(self, manifest: Manifest, base_url: str) -> List[FileDescriptor]:
        """Аудио-компаньоны для книг с текстом; пустой список если фаза отключена"""
        if not self.config.enrichment_enabled:
            return []
        base = base_url.rstrip("/")
        planned = []
        for book in manifest.books:
            if book.get("id") is None or not has_narrative_text(book):
                continue
            relative = self.config.companion_audio_path.format(book_id=book["id"])
            planned.append(FileDescriptor(url=f"{base}/{relative}", relative_path=relative))
        return planned

    def run(self, session: UpdateSession, files: List[FileDescriptor],
            enrichment: List[FileDescriptor]):
        """
        Все фазы скачивания. Без enrichment скачивание занимает полосу до 100%.

        Raises:
            DownloadError: Ошибка любого файла (temp_root уже удален)
            UpdateCancelledError: Отмена (temp_root уже удален)
        """
        download_max = DOWNLOAD_MAX if enrichment else COMPLETE
        try:
            self.create_folders(session, files)
            self.download_all(session, files, download_max)
        except BaseException:
            self.discard(session)
            raise

        if enrichment:
            try:
                self.enrich(session, enrichment, download_max)
            except UpdateCancelledError:
                self.discard(session)
                raise

    def create_folders(self, session: UpdateSession, files: List[FileDescriptor]):
        session.set_phase(UpdatePhase.CREATE_FOLDERS)
        self.reporter.status("Creating folders...")
        logger.info(f"📁 Подготовка папок для {len(files)} файлов")

        try:
            if session.temp_root.exists():
                shutil.rmtree(session.temp_root)
            session.temp_root.mkdir(parents=True)
        except OSError as e:
            raise DownloadError(str(session.temp_root), e) from e

        total = max(1, len(files))
        for index, descriptor in enumerate(files):
            session.cancel_token.raise_if_cancelled()
            dest = self._destination(session, descriptor)
            try:
                dest.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise DownloadError(descriptor.url, e) from e
            self.reporter.band(ANALYZE_MAX, CREATE_MAX, (index + 1) / total,
                               f"Prepared folder for {descriptor.relative_path}")

    def download_all(self, session: UpdateSession, files: List[FileDescriptor], download_max: float):
        session.set_phase(UpdatePhase.DOWNLOAD)
        self.reporter.status("Downloading files...")
        logger.info(f"📥 Скачивание {len(files)} файлов")

        total = max(1, len(files))
        for index, descriptor in enumerate(files):
            session.cancel_token.raise_if_cancelled()
            relative = descriptor.relative_path

            def on_bytes(received: int, size: int, index=index, relative=relative):
                fraction = received / size if size else 0.0
                self.reporter.band(CREATE_MAX, download_max, (index + min(1.0, fraction)) / total,
                                   f"Downloading {relative}")

            self.download_one(session, descriptor, on_bytes)
            self.reporter.band(CREATE_MAX, download_max, (index + 1) / total, f"Downloaded {relative}")
            logger.info(f"✅ Скачан {relative}")

    def download_one(self, session: UpdateSession, descriptor: FileDescriptor, on_bytes=None):
        """
        Скачивание одного файла с проверкой ненулевого размера

        Raises:
            DownloadError: Сетевая ошибка, ошибка записи или пустой файл
        """
        dest = self._destination(session, descriptor)
        timeout = self.config.timeout_for(descriptor.relative_path, descriptor.size)
        try:
            received = self.http_client.download_file(
                descriptor.url, str(dest), timeout,
                on_progress=on_bytes,
                cancel_token=session.cancel_token,
                expected_size=descriptor.size,
            )
        except UpdateCancelledError:
            raise
        except (UpdaterError, OSError) as e:
            logger.error(f"❌ Ошибка скачивания {descriptor.url}: {e}")
            raise DownloadError(descriptor.url, e) from e

        if received == 0 or dest.stat().st_size == 0:
            dest.unlink(missing_ok=True)
            raise DownloadError(descriptor.url, "скачан пустой файл")

    def enrich(self, session: UpdateSession, planned: List[FileDescriptor], band_start: float):
        """Необязательная фаза: ошибки логируются, сессия продолжается"""
        session.set_phase(UpdatePhase.ENRICHMENT)
        self.reporter.status("Fetching companion audio...")
        logger.info(f"🔊 Аудио-компаньоны: {len(planned)}")

        total = len(planned)
        for index, descriptor in enumerate(planned):
            session.cancel_token.raise_if_cancelled()
            relative = descriptor.relative_path

            def on_bytes(received: int, size: int, index=index, relative=relative):
                fraction = received / size if size else 0.0
                self.reporter.band(band_start, COMPLETE, (index + min(1.0, fraction)) / total,
                                   f"Downloading {relative}")

            try:
                self._destination(session, descriptor).parent.mkdir(parents=True, exist_ok=True)
                self.download_one(session, descriptor, on_bytes)
            except (DownloadError, OSError) as e:
                logger.warning(f"⚠️ Аудио-компаньон пропущен: {e}")
            self.reporter.band(band_start, COMPLETE, (index + 1) / total, f"Processed {relative}")

    def discard(self, session: UpdateSession):
        if session.temp_root.exists():
            shutil.rmtree(session.temp_root, ignore_errors=True)
            logger.info(f"🧹 Временное дерево удалено: {session.temp_root}")

    @staticmethod
    def _destination(session: UpdateSession, descriptor: FileDescriptor) -> Path:
        dest = (session.temp_root / descriptor.relative_path).resolve()
        root = session.temp_root.resolve()
        if root != dest and root not in dest.parents:
            raise DownloadError(descriptor.url, f"путь {descriptor.relative_path} вне временного дерева")
        return dest

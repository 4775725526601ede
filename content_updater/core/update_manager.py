"""
Content Updater - основной координатор обновления контента
"""

import logging
from pathlib import Path
from typing import Optional, Union

from ..config import UpdaterConfig
from ..providers.http_client import UpdateHTTPClient
from ..providers.manifest_provider import ManifestProvider
from ..providers.asset_resolver import AssetResolver
from ..providers.download_pipeline import DownloadPipeline
from ..providers.atomic_swapper import AtomicSwapper
from ..providers.progress_reporter import ProgressReporter, ANALYZE_MAX
from .errors import UpdaterError, SwapError
from .session import UpdateSession, UpdateLock
from .types import (
    UpdatePhase, UpdateCheckResult, UpdateResult,
    ProgressListener, CancellationToken,
)

logger = logging.getLogger(__name__)


class ContentUpdater:
    """
    Проверка и применение обновлений контента для одного dist_dir.

    Экземпляр не хранит состояние сессии: каждый run() создает
    собственную UpdateSession и удаляет ее временные пути в конце.
    """

    def __init__(self, config: Optional[UpdaterConfig] = None,
                 http_client: Optional[UpdateHTTPClient] = None):
        self.config = config or UpdaterConfig()
        self.http_client = http_client or UpdateHTTPClient(self.config.chunk_size)
        self.manifest_provider = ManifestProvider(self.config, self.http_client)
        self.asset_resolver = AssetResolver(self.config, self.http_client)

    def check(self, dist_dir: Union[str, Path], remote_base_url: Optional[str] = None) -> UpdateCheckResult:
        """Только чтение: без записи на диск и без скачивания ассетов"""
        base_url = remote_base_url or self.config.remote_base_url
        return self.manifest_provider.check_for_update(dist_dir, base_url)

    def run(self, dist_dir: Union[str, Path], remote_base_url: Optional[str] = None,
            on_progress: Optional[ProgressListener] = None,
            cancel_token: Optional[CancellationToken] = None) -> UpdateResult:
        """
        Полный цикл: анализ, скачивание, сборка и атомарная подмена

        Returns:
            UpdateResult: updated=False и reason='same-version', если версии совпали

        Raises:
            UpdaterError: Любая ошибка сессии; dist_dir при этом не изменен
        """
        base_url = remote_base_url or self.config.remote_base_url
        reporter = ProgressReporter(on_progress)
        session = UpdateSession.create(dist_dir, self.config, cancel_token)

        lock = UpdateLock(session.dist_dir, self.config)
        locked = False
        keep_staging = False
        try:
            lock.acquire()
            locked = True
            return self._run_session(session, base_url, reporter)
        except UpdaterError as e:
            session.set_phase(UpdatePhase.FAILED)
            # Без успешного отката оператору нужны все копии дерева
            keep_staging = isinstance(e, SwapError) and e.requires_manual_intervention
            logger.error(f"❌ Обновление не выполнено: {e}")
            reporter.status(f"Update failed: {e}")
            raise
        finally:
            # Чужую сессию не трогаем: staging принадлежит владельцу блокировки
            if locked:
                if not keep_staging:
                    session.remove_staging()
                lock.release()

    def _run_session(self, session: UpdateSession, base_url: str,
                     reporter: ProgressReporter) -> UpdateResult:
        session.recover_interrupted_swap()
        session.remove_staging()

        # Фаза 1: анализ манифестов
        session.set_phase(UpdatePhase.ANALYZE)
        logger.info(f"🔄 Анализ обновления {session.dist_dir} из {base_url}")
        reporter.progress(0, "Analyzing remote manifest...")

        local = self.manifest_provider.read_local(session.dist_dir)
        remote = self.manifest_provider.fetch_remote(base_url)
        local_version = local.version if local else None
        remote_version = remote.version

        if remote_version and local_version and remote_version == local_version:
            logger.info(f"✅ Контент актуален: версия {remote_version}")
            session.set_phase(UpdatePhase.COMPLETED)
            reporter.complete("Content up-to-date")
            return UpdateResult(False, local_version, remote_version, reason="same-version")

        if not remote_version:
            logger.warning("⚠️ Удаленный манифест без версии, обновление выполняется принудительно")

        session.cancel_token.raise_if_cancelled()
        files = self.asset_resolver.resolve(remote, base_url)
        pipeline = DownloadPipeline(self.config, self.http_client, reporter)
        enrichment = pipeline.plan_enrichment(remote, base_url)
        reporter.progress(ANALYZE_MAX, f"Found {len(files)} files to download")

        # Фазы 2-4: папки, скачивание, аудио
        pipeline.run(session, files, enrichment)
        session.cancel_token.raise_if_cancelled()

        # Сборка и подмена
        session.set_phase(UpdatePhase.SWAP)
        reporter.status("Applying update...")
        AtomicSwapper(self.config).commit(session)

        session.set_phase(UpdatePhase.COMPLETED)
        reporter.complete("Update complete")
        logger.info(f"✅ Контент обновлен: {local_version} -> {remote_version}")
        return UpdateResult(True, local_version, remote_version, reason="updated")


def check_for_update(dist_dir: Union[str, Path], remote_base_url: str,
                     config: Optional[UpdaterConfig] = None) -> UpdateCheckResult:
    """Проверка наличия обновления контента"""
    return ContentUpdater(config).check(dist_dir, remote_base_url)


def run_updater(dist_dir: Union[str, Path], remote_base_url: str,
                on_progress: Optional[ProgressListener] = None,
                config: Optional[UpdaterConfig] = None,
                cancel_token: Optional[CancellationToken] = None) -> UpdateResult:
    """Применение обновления контента; на любой ошибке dist_dir не изменен"""
    return ContentUpdater(config).run(dist_dir, remote_base_url, on_progress, cancel_token)

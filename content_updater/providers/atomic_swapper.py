"""
Атомарная подмена дерева контента с возможностью отката

BUILDING -> STAGED -> SWAPPING -> COMMITTED | ROLLED_BACK
"""

import os
import stat
import shutil
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Union

from ..config import UpdaterConfig
from ..core.errors import SwapError
from ..core.session import UpdateSession
from ..core.types import SwapState

logger = logging.getLogger(__name__)


def _ignore_special_files(directory: str, names: List[str]) -> List[str]:
    """FIFO, сокеты и устройства не копируются"""
    ignored = []
    for name in names:
        mode = os.lstat(os.path.join(directory, name)).st_mode
        if not (stat.S_ISREG(mode) or stat.S_ISDIR(mode) or stat.S_ISLNK(mode)):
            logger.warning(f"⚠️ Пропуск специального файла: {os.path.join(directory, name)}")
            ignored.append(name)
    return ignored


def copy_tree(src: Union[str, Path], dst: Union[str, Path]):
    """
    Рекурсивное копирование src поверх dst.

    Политика:
    - существующие файлы в dst перезаписываются, лишние остаются;
    - символические ссылки копируются как ссылки, без перехода по ним;
    - специальные файлы (FIFO, сокеты, устройства) пропускаются с предупреждением;
    - отсутствующий src - пустая операция.
    """
    src = Path(src)
    if not src.exists():
        return
    shutil.copytree(
        src, dst,
        symlinks=True,
        ignore=_ignore_special_files,
        copy_function=shutil.copy2,
        dirs_exist_ok=True,
    )


def _device_of(path: Path) -> int:
    return os.stat(path).st_dev


class AtomicSwapper:
    """Сборка нового дерева и подмена через два rename"""

    def __init__(self, config: UpdaterConfig):
        self.config = config
        self.state = SwapState.BUILDING

    def commit(self, session: UpdateSession):
        """
        Сборка dist_tmp и подмена dist_dir

        Raises:
            SwapError: Ошибка сборки или подмены; dist_dir восстановлен,
                если откат удался
        """
        self.build(session)
        self.swap(session)
        self.finalize(session)

    def build(self, session: UpdateSession):
        """Копия dist_dir плюс наложение temp_root; исходные деревья не меняются"""
        self.state = SwapState.BUILDING
        logger.info(f"🔧 Сборка нового дерева: {session.dist_tmp}")
        try:
            self._ensure_same_volume(session)
            if session.dist_tmp.exists():
                shutil.rmtree(session.dist_tmp)
            session.dist_tmp.mkdir(parents=True)
            copy_tree(session.dist_dir, session.dist_tmp)
            copy_tree(session.temp_root, session.dist_tmp)
        except SwapError:
            raise
        except OSError as e:
            logger.error(f"❌ Ошибка сборки дерева: {e}")
            raise SwapError(e) from e
        self.state = SwapState.STAGED

    def swap(self, session: UpdateSession):
        """dist_dir -> backup, dist_tmp -> dist_dir; при ошибке откат"""
        if self.state is not SwapState.STAGED:
            raise SwapError(f"подмена невозможна в состоянии {self.state.value}")

        self.state = SwapState.SWAPPING
        dist_dir, backup = session.dist_dir, session.backup_dir
        try:
            if backup.exists():
                shutil.rmtree(backup)
            if dist_dir.exists():
                os.rename(dist_dir, backup)
                logger.info(f"Создан backup: {backup}")
            os.rename(session.dist_tmp, dist_dir)
        except OSError as e:
            logger.error(f"❌ Ошибка подмены: {e}")
            self._rollback(session, e)

        self.state = SwapState.COMMITTED
        logger.info("✅ Новое дерево контента применено")

    def finalize(self, session: UpdateSession):
        """Удаление backup и temp_root, запись маркера времени обновления"""
        for path in (session.backup_dir, session.temp_root):
            try:
                if path.exists():
                    shutil.rmtree(path)
            except OSError as e:
                logger.warning(f"⚠️ Не удалось удалить {path}: {e}")

        marker = session.dist_dir / self.config.marker_name
        try:
            marker.write_text(datetime.now(timezone.utc).isoformat(), encoding='utf-8')
            logger.info(f"Маркер обновления записан: {marker}")
        except OSError as e:
            logger.warning(f"⚠️ Не удалось записать маркер {marker}: {e}")

    def _rollback(self, session: UpdateSession, cause: OSError):
        dist_dir, backup = session.dist_dir, session.backup_dir
        try:
            if backup.exists() and not dist_dir.exists():
                os.rename(backup, dist_dir)
                logger.info("Выполнен откат к предыдущему дереву")
        except OSError as rollback_error:
            self.state = SwapState.FAILED
            logger.critical(
                f"🚨 Откат не удался, требуется ручное вмешательство: "
                f"{backup} -> {dist_dir}: {rollback_error}"
            )
            raise SwapError(cause, rollback_error=rollback_error) from cause

        self.state = SwapState.ROLLED_BACK
        raise SwapError(cause) from cause

    def _ensure_same_volume(self, session: UpdateSession):
        """rename атомарен только в пределах одного тома"""
        parent = session.dist_dir.parent
        parent.mkdir(parents=True, exist_ok=True)
        if session.dist_dir.exists() and _device_of(session.dist_dir) != _device_of(parent):
            raise SwapError(
                f"{session.dist_dir} находится на другом томе, чем {parent}; "
                f"атомарная подмена невозможна"
            )

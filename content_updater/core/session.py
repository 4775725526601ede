"""
Сессия обновления и блокировка от параллельного запуска
"""

import os
import json
import time
import shutil
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

import psutil

from ..config import UpdaterConfig
from .errors import SwapError, UpdateInProgressError
from .types import UpdatePhase, CancellationToken

logger = logging.getLogger(__name__)


@dataclass
class UpdateSession:
    """
    Эфемерное состояние одного запуска run_updater.

    dist_dir - закоммиченное дерево, temp_root - скачанные файлы,
    dist_tmp - собранное новое дерево, backup_dir - старое дерево во время подмены.
    Все служебные пути - соседи dist_dir с его именем в названии (.dist.update_tmp, .dist.tmp),
    поэтому деревья в одном каталоге не делят staging.
    """
    dist_dir: Path
    temp_root: Path
    dist_tmp: Path
    backup_dir: Path
    phase: UpdatePhase = UpdatePhase.IDLE
    cancel_token: CancellationToken = field(default_factory=CancellationToken)

    @classmethod
    def create(cls, dist_dir: Union[str, Path], config: UpdaterConfig,
               cancel_token: Optional[CancellationToken] = None) -> 'UpdateSession':
        dist_dir = Path(dist_dir).absolute()
        parent = dist_dir.parent
        return cls(
            dist_dir=dist_dir,
            temp_root=parent / f".{dist_dir.name}{config.temp_suffix}",
            dist_tmp=parent / f".{dist_dir.name}{config.dist_tmp_suffix}",
            backup_dir=dist_dir.with_name(dist_dir.name + config.backup_suffix),
            cancel_token=cancel_token or CancellationToken(),
        )

    def set_phase(self, phase: UpdatePhase):
        logger.debug(f"Фаза: {self.phase.value} -> {phase.value}")
        self.phase = phase

    def remove_staging(self):
        """Удаление temp_root и dist_tmp (остатки прошлого запуска или текущей сессии)"""
        for path in (self.temp_root, self.dist_tmp):
            if path.exists():
                shutil.rmtree(path, ignore_errors=True)
                logger.debug(f"🧹 Удалено: {path}")

    def recover_interrupted_swap(self) -> bool:
        """
        Если прошлый запуск упал между двумя rename, возвращаем backup на место

        Raises:
            SwapError: Не удалось вернуть backup; дерево требует ручного вмешательства
        """
        if not self.dist_dir.exists() and self.backup_dir.exists():
            logger.warning(f"⚠️ Найдена прерванная подмена, восстанавливаю {self.dist_dir} из backup")
            try:
                os.rename(self.backup_dir, self.dist_dir)
            except OSError as e:
                raise SwapError(f"восстановление {self.backup_dir} после прерванной подмены", e) from e
            return True
        return False


class UpdateLock:
    """
    Advisory-блокировка {dist_dir}.lock.

    Пересекающиеся вызовы отклоняются. Блокировка умершего процесса
    или старше stale_seconds считается невалидной и перехватывается.
    """

    def __init__(self, dist_dir: Union[str, Path], config: UpdaterConfig):
        dist_dir = Path(dist_dir).absolute()
        self.lock_file = dist_dir.with_name(dist_dir.name + config.lock_suffix)
        self.stale_seconds = config.lock_stale_seconds
        self.lock_fd: Optional[int] = None

    def acquire(self):
        """
        Raises:
            UpdateInProgressError: Блокировку держит живой процесс
        """
        self.lock_file.parent.mkdir(parents=True, exist_ok=True)
        try:
            self.lock_fd = os.open(self.lock_file, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError:
            owner = self._read_owner()
            if self._is_valid(owner):
                raise UpdateInProgressError(str(self.lock_file), owner.get("pid") if owner else None)
            logger.warning(f"🧹 Очищаю невалидную блокировку: {self.lock_file}")
            self.lock_file.unlink(missing_ok=True)
            return self.acquire()

        lock_info = {"pid": os.getpid(), "timestamp": time.time()}
        os.write(self.lock_fd, json.dumps(lock_info).encode())
        os.fsync(self.lock_fd)
        logger.debug(f"Блокировка захвачена: {self.lock_file}")

    def release(self):
        if self.lock_fd is not None:
            os.close(self.lock_fd)
            self.lock_fd = None
            self.lock_file.unlink(missing_ok=True)
            logger.debug(f"Блокировка освобождена: {self.lock_file}")

    def __enter__(self):
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False

    def _read_owner(self) -> Optional[dict]:
        try:
            with open(self.lock_file, 'r') as f:
                data = json.load(f)
            return data if isinstance(data, dict) else None
        except (OSError, ValueError):
            return None

    def _is_valid(self, owner: Optional[dict]) -> bool:
        if not owner:
            # Файл мог быть создан, но еще не записан: доверяем ему, пока он свежий
            try:
                age = time.time() - os.path.getmtime(self.lock_file)
            except OSError:
                return False
            return age < 5

        if time.time() - float(owner.get("timestamp", 0)) > self.stale_seconds:
            return False

        pid = owner.get("pid")
        if not isinstance(pid, int):
            return False
        return psutil.pid_exists(pid)

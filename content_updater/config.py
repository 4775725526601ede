"""
Конфигурация системы обновления контента
"""

import os
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Optional, Dict, Any, Tuple, Union

import yaml

DEFAULT_MEDIA_EXTENSIONS = (
    ".mp4", ".webm", ".mov", ".m4v", ".mkv",
    ".wav", ".mp3", ".ogg", ".m4a", ".flac",
)


@dataclass
class UpdaterConfig:
    """Конфигурация обновления контента"""

    # Источник контента
    remote_base_url: str = "http://127.0.0.1:5173"
    manifest_name: str = "content.json"
    index_name: str = "index.html"

    # Таймауты (секунды), действуют на одну операцию
    manifest_timeout: float = 8.0
    asset_timeout: float = 20.0
    media_timeout: float = 120.0
    index_timeout: float = 6.0
    css_timeout: float = 5.0

    # Скачивание
    chunk_size: int = 64 * 1024
    large_file_threshold: int = 10 * 1024 * 1024
    media_extensions: Tuple[str, ...] = field(default=DEFAULT_MEDIA_EXTENSIONS)

    # Поиск ассетов
    same_origin_only: bool = True

    # Дополнительная фаза (аудио к книгам)
    enrichment_enabled: bool = True
    companion_audio_path: str = "books/{book_id}/tts.wav"

    # Служебные пути рядом с distDir
    temp_suffix: str = ".update_tmp"
    dist_tmp_suffix: str = ".tmp"
    backup_suffix: str = ".bak"
    marker_name: str = ".updated_at"
    lock_suffix: str = ".lock"
    lock_stale_seconds: int = 3600

    def __post_init__(self):
        """Валидация конфигурации"""
        if not self.remote_base_url.startswith(("http://", "https://")):
            raise ValueError("remote_base_url должен начинаться с http:// или https://")

        for name in ("manifest_timeout", "asset_timeout", "media_timeout",
                     "index_timeout", "css_timeout"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} должен быть больше нуля")

        if not (self.manifest_timeout <= self.asset_timeout <= self.media_timeout):
            raise ValueError("Таймауты должны удовлетворять manifest <= asset <= media")

        if self.chunk_size <= 0:
            raise ValueError("chunk_size должен быть больше нуля")

        if "{book_id}" not in self.companion_audio_path:
            raise ValueError("companion_audio_path должен содержать {book_id}")

        # YAML и env отдают списки, храним кортеж в нижнем регистре
        self.media_extensions = tuple(ext.lower() for ext in self.media_extensions)

    def is_valid(self) -> bool:
        """Проверка валидности конфигурации"""
        try:
            self.__post_init__()
            return True
        except ValueError:
            return False

    def timeout_for(self, relative_path: str, size: Optional[int] = None) -> float:
        """Таймаут скачивания одного файла по его типу и размеру"""
        suffix = Path(relative_path).suffix.lower()
        if suffix == ".json":
            return self.manifest_timeout
        if suffix in self.media_extensions:
            return self.media_timeout
        if size and size > self.large_file_threshold:
            return self.media_timeout
        return self.asset_timeout

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> 'UpdaterConfig':
        """Создание конфигурации из словаря (неизвестные ключи игнорируются)"""
        known = {name for name in cls.__dataclass_fields__}
        return cls(**{k: v for k, v in config_dict.items() if k in known})

    @classmethod
    def from_env(cls) -> 'UpdaterConfig':
        """Создание конфигурации из переменных окружения"""
        defaults = cls()
        return cls(
            remote_base_url=os.getenv('CONTENT_UPDATER_URL', defaults.remote_base_url),
            manifest_timeout=float(os.getenv('CONTENT_UPDATER_MANIFEST_TIMEOUT', defaults.manifest_timeout)),
            asset_timeout=float(os.getenv('CONTENT_UPDATER_ASSET_TIMEOUT', defaults.asset_timeout)),
            media_timeout=float(os.getenv('CONTENT_UPDATER_MEDIA_TIMEOUT', defaults.media_timeout)),
            enrichment_enabled=os.getenv('CONTENT_UPDATER_ENRICHMENT', 'true').lower() == 'true',
            same_origin_only=os.getenv('CONTENT_UPDATER_SAME_ORIGIN', 'true').lower() == 'true',
        )

    @classmethod
    def from_yaml(cls, config_path: Union[str, Path]) -> 'UpdaterConfig':
        """Загрузка секции content_updater из YAML; без файла - значения по умолчанию"""
        path = Path(config_path)
        if not path.exists():
            return cls()

        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}

        return cls.from_dict(data.get('content_updater', {}) or {})

    def to_dict(self) -> Dict[str, Any]:
        """Преобразование в словарь"""
        data = asdict(self)
        data['media_extensions'] = list(self.media_extensions)
        return data

#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Настройка логирования для запуска обновления из командной строки
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional, Union

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def setup_logging(log_dir: Optional[Union[str, Path]] = None,
                  level: int = logging.INFO,
                  console: bool = True) -> logging.Logger:
    """
    Настраивает корневой логгер

    Args:
        log_dir: Директория для updater.log и errors.log; None - только консоль
        level: Уровень логирования
        console: Дублировать ли логи в stderr

    Returns:
        logging.Logger: Логгер этого модуля
    """
    formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Очищаем существующие обработчики
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if log_dir is not None:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)

        # 1. Основной файл (с ротацией)
        file_handler = logging.handlers.RotatingFileHandler(
            log_dir / "updater.log",
            maxBytes=10*1024*1024,  # 10MB
            backupCount=5,
            encoding='utf-8'
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

        # 2. Файл ошибок (отдельно)
        error_handler = logging.handlers.RotatingFileHandler(
            log_dir / "errors.log",
            maxBytes=5*1024*1024,  # 5MB
            backupCount=3,
            encoding='utf-8'
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(formatter)
        root_logger.addHandler(error_handler)

    if console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    logger = logging.getLogger(__name__)
    logger.debug(f"Логирование настроено: dir={log_dir}, level={logging.getLevelName(level)}")
    return logger

"""
Progress Reporter - единый монотонный прогресс 0-100 по фазам
"""

import logging
from typing import Optional

from ..core.types import ProgressEvent, ProgressListener

logger = logging.getLogger(__name__)

# Границы фаз в процентах
ANALYZE_MAX = 5.0
CREATE_MAX = 15.0
DOWNLOAD_MAX = 90.0
COMPLETE = 100.0


class ProgressReporter:
    """
    Передача прогресса слушателю.

    Процент никогда не уменьшается в пределах сессии. Ошибки слушателя
    логируются и не прерывают обновление; без слушателя события отбрасываются.
    """

    def __init__(self, listener: Optional[ProgressListener] = None):
        self.listener = listener
        self.last_percent = 0.0

    def progress(self, percent: float, message: str):
        """Событие с процентом, ограниченным диапазоном [last_percent, 100]"""
        percent = min(COMPLETE, max(self.last_percent, float(percent)))
        self.last_percent = percent
        self._deliver(ProgressEvent(percent=percent, message=message))

    def status(self, message: str):
        """Статусное сообщение без процента (смена фазы, итоговая ошибка)"""
        self._deliver(ProgressEvent(percent=None, message=message))

    def band(self, start: float, end: float, fraction: float, message: str):
        """Доля fraction (0..1) внутри полосы фазы [start, end]"""
        fraction = min(1.0, max(0.0, fraction))
        self.progress(start + fraction * (end - start), message)

    def complete(self, message: str):
        self.progress(COMPLETE, message)

    def _deliver(self, event: ProgressEvent):
        if self.listener is None:
            return
        try:
            self.listener(event)
        except Exception as e:
            logger.warning(f"⚠️ Ошибка в обработчике прогресса проигнорирована: {e}")

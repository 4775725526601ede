"""
Core компоненты обновления контента
"""

from .errors import UpdaterError
from .session import UpdateSession, UpdateLock
from .update_manager import ContentUpdater

__all__ = ['UpdaterError', 'UpdateSession', 'UpdateLock', 'ContentUpdater']

"""
Провайдеры обновления контента
"""

from .http_client import UpdateHTTPClient
from .manifest_provider import ManifestProvider
from .asset_resolver import AssetResolver
from .download_pipeline import DownloadPipeline
from .atomic_swapper import AtomicSwapper, copy_tree
from .progress_reporter import ProgressReporter

__all__ = [
    'UpdateHTTPClient',
    'ManifestProvider',
    'AssetResolver',
    'DownloadPipeline',
    'AtomicSwapper',
    'copy_tree',
    'ProgressReporter',
]

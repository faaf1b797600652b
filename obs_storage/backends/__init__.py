"""ストレージバックエンド

各モジュールのインポート時に BackendRegistry へ登録される。
"""

from .base import (
    StorageBackend,
    FileAttributes,
    DirectoryAttributes,
    StorageAttributes,
    Visibility,
)
from .obs import ObsStorageBackend
from .s3 import S3StorageBackend
from .local import LocalStorageBackend

__all__ = [
    'StorageBackend',
    'FileAttributes',
    'DirectoryAttributes',
    'StorageAttributes',
    'Visibility',
    'ObsStorageBackend',
    'S3StorageBackend',
    'LocalStorageBackend',
]

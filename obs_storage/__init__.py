"""obs_storage - Huawei OBS ストレージアダプター

OBS署名（v1）・RESTクライアント・仮想ディレクトリ型ファイルシステムアダプターを提供。
OBS設定が揃っていない場合はローカルファイルシステムにフォールバックする。
"""

from .config import StorageConfig, ObsConfig, S3Config, LocalConfig
from .exceptions import (
    StorageError,
    StorageConfigError,
    BackendNotRegisteredError,
    ObsError,
    ObsTransportError,
    ObsServiceError,
    ObsParseError,
    FailureKind,
    OperationFailure,
)
from .registry import BackendRegistry
from .backends import (
    StorageBackend,
    FileAttributes,
    DirectoryAttributes,
    Visibility,
    ObsStorageBackend,
    S3StorageBackend,
    LocalStorageBackend,
)
from .obs import ObsClient, ObsSignature, SigningContext
from .prefixer import PathPrefixer
from .url import PublicUrlGenerator
from .service import StorageService, create_backend, get_storage

__all__ = [
    'StorageConfig',
    'ObsConfig',
    'S3Config',
    'LocalConfig',
    'StorageError',
    'StorageConfigError',
    'BackendNotRegisteredError',
    'ObsError',
    'ObsTransportError',
    'ObsServiceError',
    'ObsParseError',
    'FailureKind',
    'OperationFailure',
    'BackendRegistry',
    'StorageBackend',
    'FileAttributes',
    'DirectoryAttributes',
    'Visibility',
    'ObsStorageBackend',
    'S3StorageBackend',
    'LocalStorageBackend',
    'ObsClient',
    'ObsSignature',
    'SigningContext',
    'PathPrefixer',
    'PublicUrlGenerator',
    'StorageService',
    'create_backend',
    'get_storage',
]

__version__ = '1.0.0'

"""カスタム例外

ストレージ関連のエラーを表す例外クラス。

階層:
    StorageError
    ├── StorageConfigError         設定エラー（認証情報・バケット名が空など）
    ├── BackendNotRegisteredError  未登録のストレージモード
    ├── ObsError                   OBSクライアント層のエラー
    │   ├── ObsTransportError      HTTP通信自体が失敗
    │   ├── ObsServiceError        ステータスコード300以上の応答
    │   └── ObsParseError          XML応答の解析失敗
    └── OperationFailure           ファイルシステム操作の失敗（パス付き）
"""

from enum import Enum
from typing import Optional


class StorageError(Exception):
    """ストレージ操作の基底例外"""
    pass


class StorageConfigError(StorageError):
    """設定エラー"""
    pass


class BackendNotRegisteredError(StorageError):
    """バックエンドが未登録"""
    pass


class ObsError(StorageError):
    """OBSクライアントの基底例外"""
    pass


class ObsTransportError(ObsError):
    """HTTPリクエストが完了しなかった（ネットワーク障害など）"""
    pass


class ObsServiceError(ObsError):
    """OBSがエラーステータス（300以上）を返した"""

    def __init__(
        self,
        status_code: int,
        body: bytes = b'',
        error_code: Optional[str] = None,
        request_id: Optional[str] = None,
    ):
        self.status_code = status_code
        self.body = body
        self.error_code = error_code
        self.request_id = request_id
        text = body.decode('utf-8', errors='replace') if body else ''
        super().__init__(f"Request failed with status {status_code}: {text}")

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404


class ObsParseError(ObsError):
    """XML応答の解析に失敗した"""
    pass


class FailureKind(Enum):
    """操作失敗の種別"""
    WRITE_FAILED = "write_failed"
    READ_FAILED = "read_failed"
    DELETE_FAILED = "delete_failed"
    DELETE_DIRECTORY_FAILED = "delete_directory_failed"
    COPY_FAILED = "copy_failed"
    MOVE_FAILED = "move_failed"
    CREATE_DIRECTORY_FAILED = "create_directory_failed"
    LIST_FAILED = "list_failed"
    METADATA_UNAVAILABLE = "metadata_unavailable"
    VISIBILITY_UNSUPPORTED = "visibility_unsupported"


class OperationFailure(StorageError):
    """
    ファイルシステム操作の失敗

    呼び出し側は例外クラスではなく `kind` で分岐する:

        try:
            backend.move("a.txt", "b.txt")
        except OperationFailure as e:
            if e.kind is FailureKind.MOVE_FAILED:
                ...
    """

    def __init__(
        self,
        kind: FailureKind,
        path: str,
        reason: str = '',
        cause: Optional[BaseException] = None,
        destination: Optional[str] = None,
    ):
        self.kind = kind
        self.path = path
        self.reason = reason
        self.cause = cause
        self.destination = destination
        super().__init__(self._build_message())

    def _build_message(self) -> str:
        label = self.kind.value.replace('_', ' ')
        if self.destination is not None:
            message = f"{label}: {self.path} -> {self.destination}"
        else:
            message = f"{label}: {self.path}"
        if self.reason:
            message += f" ({self.reason})"
        return message

    @classmethod
    def write_failed(cls, path: str, reason: str = '', cause: BaseException = None) -> 'OperationFailure':
        return cls(FailureKind.WRITE_FAILED, path, reason, cause)

    @classmethod
    def read_failed(cls, path: str, reason: str = '', cause: BaseException = None) -> 'OperationFailure':
        return cls(FailureKind.READ_FAILED, path, reason, cause)

    @classmethod
    def delete_failed(cls, path: str, reason: str = '', cause: BaseException = None) -> 'OperationFailure':
        return cls(FailureKind.DELETE_FAILED, path, reason, cause)

    @classmethod
    def delete_directory_failed(cls, path: str, reason: str = '', cause: BaseException = None) -> 'OperationFailure':
        return cls(FailureKind.DELETE_DIRECTORY_FAILED, path, reason, cause)

    @classmethod
    def create_directory_failed(cls, path: str, reason: str = '', cause: BaseException = None) -> 'OperationFailure':
        return cls(FailureKind.CREATE_DIRECTORY_FAILED, path, reason, cause)

    @classmethod
    def list_failed(cls, path: str, reason: str = '', cause: BaseException = None) -> 'OperationFailure':
        return cls(FailureKind.LIST_FAILED, path, reason, cause)

    @classmethod
    def metadata_unavailable(cls, path: str, reason: str = '', cause: BaseException = None) -> 'OperationFailure':
        return cls(FailureKind.METADATA_UNAVAILABLE, path, reason, cause)

    @classmethod
    def visibility_unsupported(cls, path: str, reason: str = '') -> 'OperationFailure':
        return cls(FailureKind.VISIBILITY_UNSUPPORTED, path, reason)

    @classmethod
    def copy_failed(cls, source: str, destination: str, cause: BaseException = None) -> 'OperationFailure':
        reason = str(cause) if cause is not None else ''
        return cls(FailureKind.COPY_FAILED, source, reason, cause, destination=destination)

    @classmethod
    def move_failed(cls, source: str, destination: str, cause: BaseException = None) -> 'OperationFailure':
        reason = str(cause) if cause is not None else ''
        return cls(FailureKind.MOVE_FAILED, source, reason, cause, destination=destination)

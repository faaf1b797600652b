"""統合ストレージサービス

ストレージバックエンドを抽象化し、統一的なAPIを提供。
バックエンドの選択は StorageConfig のみから決まる（環境変数を読むのは get_storage のみ）。
"""

import json
import logging
from typing import Any, BinaryIO, Iterator, Optional, Union

from .config import StorageConfig
from .registry import BackendRegistry
from .backends import StorageBackend, FileAttributes, StorageAttributes
from .backends.base import WriteConfig
from .url import PublicUrlGenerator

logger = logging.getLogger(__name__)


def create_backend(config: StorageConfig) -> StorageBackend:
    """
    設定からバックエンドを生成

    Args:
        config: 統合ストレージ設定

    Returns:
        StorageBackend: 解決されたモードのバックエンド

    Raises:
        BackendNotRegisteredError: 未登録のモードが指定された場合
        StorageConfigError: バックエンド設定が不正な場合
    """
    mode = config.resolve_mode()

    # レジストリからバックエンドクラスを取得
    backend_class = BackendRegistry.get(mode)

    # バックエンド固有設定でインスタンス化
    return backend_class(config.get_backend_config())


class StorageService:
    """
    統合ストレージサービス

    モードの決定:
    - STORAGE_MODE（StorageConfig.mode）が指定されていればそれを使用
    - 未指定でOBS設定が揃っていれば 'obs'
    - それ以外は 'local'
    """

    def __init__(self, config: StorageConfig, backend: Optional[StorageBackend] = None):
        self._config = config
        self.mode = config.resolve_mode()
        self._backend = backend or create_backend(config)

        self._url_generator: Optional[PublicUrlGenerator] = None
        if self.mode == 'obs':
            self._url_generator = PublicUrlGenerator.from_config(config.obs)

        logger.info(f"StorageService initialized: mode={self.mode}")

    @property
    def backend(self) -> StorageBackend:
        """バックエンドインスタンスを取得"""
        return self._backend

    @property
    def config(self) -> StorageConfig:
        """設定を取得"""
        return self._config

    # --- 読み取り系メソッド ---

    def file_exists(self, path: str) -> bool:
        return self._backend.file_exists(path)

    def directory_exists(self, path: str) -> bool:
        return self._backend.directory_exists(path)

    def read(self, path: str) -> bytes:
        """ファイルを読み込み"""
        return self._backend.read(path)

    def read_stream(self, path: str) -> BinaryIO:
        return self._backend.read_stream(path)

    def load_text(self, path: str, encoding: str = 'utf-8') -> str:
        """テキストファイルを読み込み"""
        return self.read(path).decode(encoding)

    def load_json(self, path: str) -> Any:
        """JSONファイルを読み込み"""
        return json.loads(self.load_text(path))

    def list_contents(self, path: str, deep: bool = False) -> Iterator[StorageAttributes]:
        """ファイルとディレクトリの一覧を遅延取得"""
        return self._backend.list_contents(path, deep)

    def calculate_total_size(self, path: str) -> int:
        """指定ディレクトリ配下の合計サイズを計算"""
        return sum(
            item.file_size or 0
            for item in self.list_contents(path, deep=True)
            if item.is_file()
        )

    # --- メタデータ ---

    def mime_type(self, path: str) -> FileAttributes:
        return self._backend.mime_type(path)

    def last_modified(self, path: str) -> FileAttributes:
        return self._backend.last_modified(path)

    def file_size(self, path: str) -> FileAttributes:
        return self._backend.file_size(path)

    def visibility(self, path: str) -> FileAttributes:
        return self._backend.visibility(path)

    def set_visibility(self, path: str, visibility: str) -> None:
        self._backend.set_visibility(path, visibility)

    # --- 書き込み系メソッド ---

    def write(self, path: str, contents: Union[bytes, str], config: WriteConfig = None) -> None:
        """ファイルを保存"""
        self._backend.write(path, contents, config)

    def write_stream(self, path: str, stream: BinaryIO, config: WriteConfig = None) -> None:
        self._backend.write_stream(path, stream, config)

    def save_text(self, path: str, content: str, encoding: str = 'utf-8') -> None:
        """テキストファイルを保存"""
        self.write(path, content.encode(encoding), {'content_type': 'text/plain'})

    def save_json(self, path: str, data: Any) -> None:
        """JSONファイルを保存"""
        content = json.dumps(data, ensure_ascii=False, indent=2)
        self.write(path, content.encode('utf-8'), {'content_type': 'application/json'})

    def delete(self, path: str) -> None:
        """ファイル削除"""
        self._backend.delete(path)

    def delete_directory(self, path: str) -> None:
        self._backend.delete_directory(path)

    def create_directory(self, path: str, config: WriteConfig = None) -> None:
        self._backend.create_directory(path, config)

    def copy(self, source: str, destination: str, config: WriteConfig = None) -> None:
        self._backend.copy(source, destination, config)

    def move(self, source: str, destination: str, config: WriteConfig = None) -> None:
        self._backend.move(source, destination, config)

    # --- OBS固有メソッド ---

    def public_url(self, path: str) -> Optional[str]:
        """公開URLを生成（OBSで公開ドメインまたはエンドポイント設定時のみ）"""
        if self._url_generator is None:
            return None
        return self._url_generator.public_url(path)


def get_storage(config: Optional[StorageConfig] = None) -> StorageService:
    """StorageServiceを取得（設定省略時は環境変数から読み込み）"""
    return StorageService(config or StorageConfig.from_env())

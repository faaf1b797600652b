"""ローカルファイルシステムストレージバックエンド

OBS設定が揃っていない場合のフォールバック先。
"""

import logging
import mimetypes
import os
import shutil
import stat
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Union

from ..config import LocalConfig
from ..exceptions import OperationFailure
from ..registry import BackendRegistry
from .base import (
    StorageBackend,
    FileAttributes,
    DirectoryAttributes,
    StorageAttributes,
    Visibility,
    WriteConfig,
)

logger = logging.getLogger(__name__)

_PERMISSIONS = {
    Visibility.PUBLIC: 0o644,
    Visibility.PRIVATE: 0o600,
}


@BackendRegistry.register("local")
class LocalStorageBackend(StorageBackend):
    """ローカルファイルシステムストレージバックエンド"""

    def __init__(self, config: LocalConfig = None):
        """
        ローカルバックエンドを初期化

        Args:
            config: ローカル設定。Noneの場合は環境変数から読み込み
        """
        if config is None:
            config = LocalConfig.from_env()

        self.base_path = Path(config.base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)
        logger.info(f"LocalStorageBackend initialized: path={self.base_path}")

    def _get_full_path(self, path: str) -> Path:
        """相対パスをフルパスに変換"""
        return self.base_path / path.strip('\\/')

    def _relative(self, full_path: Path) -> str:
        return full_path.relative_to(self.base_path).as_posix()

    @staticmethod
    def _mtime(full_path: Path) -> datetime:
        return datetime.fromtimestamp(full_path.stat().st_mtime, tz=timezone.utc)

    def file_exists(self, path: str) -> bool:
        full_path = self._get_full_path(path)
        return full_path.is_file()

    def directory_exists(self, path: str) -> bool:
        full_path = self._get_full_path(path)
        return full_path.is_dir()

    def read(self, path: str) -> bytes:
        try:
            with open(self._get_full_path(path), 'rb') as f:
                return f.read()
        except OSError as e:
            logger.error(f"Local load failed: {path} - {e}")
            raise OperationFailure.read_failed(path, str(e), e) from e

    def write(self, path: str, contents: Union[bytes, str], config: WriteConfig = None) -> None:
        if isinstance(contents, str):
            contents = contents.encode('utf-8')
        try:
            full_path = self._get_full_path(path)
            full_path.parent.mkdir(parents=True, exist_ok=True)
            with open(full_path, 'wb') as f:
                f.write(contents)
            if config and config.get('visibility'):
                os.chmod(full_path, _PERMISSIONS[config['visibility']])
            logger.debug(f"Local save success: {path}")
        except (OSError, KeyError) as e:
            logger.error(f"Local save failed: {path} - {e}")
            raise OperationFailure.write_failed(path, str(e), e) from e

    def delete(self, path: str) -> None:
        try:
            full_path = self._get_full_path(path)
            if full_path.exists():
                full_path.unlink()
        except OSError as e:
            logger.error(f"Local delete failed: {path} - {e}")
            raise OperationFailure.delete_failed(path, str(e), e) from e

    def delete_directory(self, path: str) -> None:
        full_path = self._get_full_path(path)
        if not full_path.exists():
            return
        try:
            shutil.rmtree(full_path)
        except OSError as e:
            logger.error(f"Local delete_directory failed: {path} - {e}")
            raise OperationFailure.delete_directory_failed(path, str(e), e) from e

    def create_directory(self, path: str, config: WriteConfig = None) -> None:
        try:
            self._get_full_path(path).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Local create_directory failed: {path} - {e}")
            raise OperationFailure.create_directory_failed(path, str(e), e) from e

    def list_contents(self, path: str, deep: bool = False) -> Iterator[StorageAttributes]:
        base_dir = self._get_full_path(path)
        if not base_dir.is_dir():
            return

        try:
            items = sorted(base_dir.rglob('*') if deep else base_dir.iterdir())
            for item in items:
                if item.is_file():
                    yield FileAttributes(
                        path=self._relative(item),
                        file_size=item.stat().st_size,
                        last_modified=self._mtime(item),
                    )
                elif item.is_dir() and not deep:
                    yield DirectoryAttributes(
                        path=self._relative(item),
                        last_modified=self._mtime(item),
                    )
        except OSError as e:
            logger.error(f"Local list_contents failed: {path} - {e}")
            raise OperationFailure.list_failed(path, str(e), e) from e

    def set_visibility(self, path: str, visibility: str) -> None:
        if visibility not in _PERMISSIONS:
            raise OperationFailure.visibility_unsupported(path, f"Unknown visibility: {visibility}")
        try:
            os.chmod(self._get_full_path(path), _PERMISSIONS[visibility])
        except OSError as e:
            raise OperationFailure.visibility_unsupported(path, str(e)) from e

    def visibility(self, path: str) -> FileAttributes:
        try:
            mode = self._get_full_path(path).stat().st_mode
        except OSError as e:
            raise OperationFailure.metadata_unavailable(path, f"visibility: {e}", e) from e
        visibility = Visibility.PUBLIC if mode & stat.S_IROTH else Visibility.PRIVATE
        return FileAttributes(path=path, visibility=visibility)

    def _stat(self, path: str, attribute: str) -> os.stat_result:
        full_path = self._get_full_path(path)
        try:
            if not full_path.is_file():
                raise FileNotFoundError(f"No such file: {path}")
            return full_path.stat()
        except OSError as e:
            raise OperationFailure.metadata_unavailable(path, f"{attribute}: {e}", e) from e

    def mime_type(self, path: str) -> FileAttributes:
        self._stat(path, 'mime_type')
        mime_type, _ = mimetypes.guess_type(path)
        return FileAttributes(path=path, mime_type=mime_type or 'application/octet-stream')

    def last_modified(self, path: str) -> FileAttributes:
        st = self._stat(path, 'last_modified')
        return FileAttributes(
            path=path,
            last_modified=datetime.fromtimestamp(st.st_mtime, tz=timezone.utc),
        )

    def file_size(self, path: str) -> FileAttributes:
        st = self._stat(path, 'file_size')
        return FileAttributes(path=path, file_size=st.st_size)

    def copy(self, source: str, destination: str, config: WriteConfig = None) -> None:
        try:
            destination_path = self._get_full_path(destination)
            destination_path.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(self._get_full_path(source), destination_path)
        except OSError as e:
            logger.error(f"Local copy failed: {source} -> {destination} - {e}")
            raise OperationFailure.copy_failed(source, destination, e) from e

"""ストレージバックエンド抽象基底クラス

すべてのストレージバックエンドが実装すべきファイルシステム操作を定義。
OBS・S3・ローカルの各バックエンドはこのインターフェースのみで利用される。
"""

import io
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, BinaryIO, Dict, Iterator, Mapping, Optional, Union

from ..exceptions import OperationFailure


class Visibility:
    """ファイルの公開範囲"""
    PUBLIC = "public"
    PRIVATE = "private"


@dataclass(frozen=True)
class FileAttributes:
    """ファイルの属性"""
    path: str
    file_size: Optional[int] = None
    visibility: Optional[str] = None
    last_modified: Optional[datetime] = None
    mime_type: Optional[str] = None
    extra_metadata: Dict[str, str] = field(default_factory=dict)

    @property
    def type(self) -> str:
        return "file"

    def is_file(self) -> bool:
        return True

    def is_dir(self) -> bool:
        return False

    def to_dict(self) -> Dict[str, Any]:
        """辞書形式に変換"""
        result = {
            "type": self.type,
            "path": self.path,
            "fileSize": self.file_size,
            "lastModified": self.last_modified.isoformat() if self.last_modified else None,
        }
        if self.visibility:
            result["visibility"] = self.visibility
        if self.mime_type:
            result["mimeType"] = self.mime_type
        if self.extra_metadata:
            result["extraMetadata"] = dict(self.extra_metadata)
        return result


@dataclass(frozen=True)
class DirectoryAttributes:
    """ディレクトリの属性"""
    path: str
    visibility: Optional[str] = None
    last_modified: Optional[datetime] = None

    @property
    def type(self) -> str:
        return "dir"

    def is_file(self) -> bool:
        return False

    def is_dir(self) -> bool:
        return True

    def to_dict(self) -> Dict[str, Any]:
        """辞書形式に変換"""
        result = {
            "type": self.type,
            "path": self.path,
            "lastModified": self.last_modified.isoformat() if self.last_modified else None,
        }
        if self.visibility:
            result["visibility"] = self.visibility
        return result


StorageAttributes = Union[FileAttributes, DirectoryAttributes]
WriteConfig = Optional[Mapping[str, Any]]


class StorageBackend(ABC):
    """ストレージバックエンドの抽象基底クラス"""

    # --- 存在確認 ---

    @abstractmethod
    def file_exists(self, path: str) -> bool:
        """
        ファイルが存在するか確認する

        失敗の理由（未存在・通信エラー等）は区別せず、すべて False を返す。

        Args:
            path: ファイルパス

        Returns:
            bool: 存在する場合True
        """
        pass

    @abstractmethod
    def directory_exists(self, path: str) -> bool:
        """
        ディレクトリが存在するか確認する

        Args:
            path: ディレクトリパス

        Returns:
            bool: 配下に1件以上のオブジェクトがある場合True
        """
        pass

    # --- 読み取り ---

    @abstractmethod
    def read(self, path: str) -> bytes:
        """
        ファイルを読み込む

        Raises:
            OperationFailure: READ_FAILED
        """
        pass

    def read_stream(self, path: str) -> BinaryIO:
        """
        ファイルをストリームとして読み込む

        Returns:
            BinaryIO: 先頭に巻き戻したストリーム
        """
        stream = io.BytesIO(self.read(path))
        stream.seek(0)
        return stream

    # --- 書き込み ---

    @abstractmethod
    def write(self, path: str, contents: Union[bytes, str], config: WriteConfig = None) -> None:
        """
        ファイルを書き込む

        Args:
            path: 保存先パス
            contents: ファイル内容
            config: content_type, metadata, storage_class, acl

        Raises:
            OperationFailure: WRITE_FAILED
        """
        pass

    def write_stream(self, path: str, stream: BinaryIO, config: WriteConfig = None) -> None:
        """
        ストリームからファイルを書き込む

        Raises:
            OperationFailure: WRITE_FAILED
        """
        try:
            contents = stream.read()
        except (OSError, ValueError) as e:
            raise OperationFailure.write_failed(path, f"Unable to read stream contents: {e}", e) from e
        self.write(path, contents, config)

    # --- 削除 ---

    @abstractmethod
    def delete(self, path: str) -> None:
        """
        ファイルを削除する

        Raises:
            OperationFailure: DELETE_FAILED
        """
        pass

    @abstractmethod
    def delete_directory(self, path: str) -> None:
        """
        ディレクトリ配下を再帰的に削除する（空の場合は何もしない）

        Raises:
            OperationFailure: DELETE_DIRECTORY_FAILED
        """
        pass

    # --- ディレクトリ ---

    @abstractmethod
    def create_directory(self, path: str, config: WriteConfig = None) -> None:
        """
        ディレクトリを作成する

        Raises:
            OperationFailure: CREATE_DIRECTORY_FAILED
        """
        pass

    @abstractmethod
    def list_contents(self, path: str, deep: bool = False) -> Iterator[StorageAttributes]:
        """
        ディレクトリ配下の一覧を遅延取得する

        Args:
            path: ディレクトリパス
            deep: Trueの場合は再帰的に列挙（ディレクトリ要素は返さない）

        Yields:
            FileAttributes / DirectoryAttributes

        Raises:
            OperationFailure: LIST_FAILED
        """
        pass

    # --- 公開範囲 ---

    @abstractmethod
    def set_visibility(self, path: str, visibility: str) -> None:
        """
        公開範囲を設定する

        Raises:
            OperationFailure: VISIBILITY_UNSUPPORTED
        """
        pass

    @abstractmethod
    def visibility(self, path: str) -> FileAttributes:
        """公開範囲を取得する"""
        pass

    # --- メタデータ ---

    @abstractmethod
    def mime_type(self, path: str) -> FileAttributes:
        """
        MIMEタイプを取得する

        Raises:
            OperationFailure: METADATA_UNAVAILABLE
        """
        pass

    @abstractmethod
    def last_modified(self, path: str) -> FileAttributes:
        """
        最終更新日時を取得する

        Raises:
            OperationFailure: METADATA_UNAVAILABLE
        """
        pass

    @abstractmethod
    def file_size(self, path: str) -> FileAttributes:
        """
        ファイルサイズを取得する

        Raises:
            OperationFailure: METADATA_UNAVAILABLE
        """
        pass

    # --- コピー・移動 ---

    @abstractmethod
    def copy(self, source: str, destination: str, config: WriteConfig = None) -> None:
        """
        ファイルをコピーする

        Raises:
            OperationFailure: COPY_FAILED
        """
        pass

    def move(self, source: str, destination: str, config: WriteConfig = None) -> None:
        """
        ファイルを移動する（コピー後に元ファイルを削除）

        元ファイルの削除に失敗した場合、コピー先は残したまま MOVE_FAILED とする。

        Raises:
            OperationFailure: MOVE_FAILED
        """
        try:
            self.copy(source, destination, config)
            self.delete(source)
        except OperationFailure as e:
            raise OperationFailure.move_failed(source, destination, e) from e

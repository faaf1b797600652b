"""Huawei OBSストレージバックエンド

フラットなオブジェクトキー空間の上に階層型ファイルシステムを模倣する。

- ディレクトリは実体を持たない。非再帰の一覧では CommonPrefixes から推定し、
  明示的に作成した場合は "/" で終わる0バイトのオブジェクト（ディレクトリマーカー）になる。
- ディレクトリマーカーはファイルとして返さない。
- 公開範囲（ACL）の変更はサポートしない。
"""

import io
import logging
from typing import BinaryIO, Dict, Iterator, List, Optional, Union

from ..config import ObsConfig
from ..exceptions import StorageConfigError, ObsError, OperationFailure
from ..obs.client import ObsClient, MAX_DELETE_OBJECTS
from ..obs.models import MultipartUpload, ObjectListing, ObjectMetadata, UploadedPart
from ..prefixer import PathPrefixer
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

DIRECTORY_SEPARATOR = '/'
OBS_META_PREFIX = 'x-obs-meta-'


@BackendRegistry.register("obs")
class ObsStorageBackend(StorageBackend):
    """Huawei OBSストレージバックエンド"""

    def __init__(self, config: ObsConfig = None, client: Optional[ObsClient] = None):
        """
        OBSバックエンドを初期化

        Args:
            config: OBS設定。Noneの場合は環境変数から読み込み
            client: 使用するクライアント。Noneの場合は設定から生成

        Raises:
            StorageConfigError: バケット名または認証情報が空の場合
        """
        if config is None:
            config = ObsConfig.from_env()
        if not config.bucket_name:
            raise StorageConfigError("Bucket name cannot be empty")

        self.client = client or ObsClient.from_config(config)
        self.bucket_name = config.bucket_name
        self.prefixer = PathPrefixer(config.prefix, DIRECTORY_SEPARATOR)
        self.multipart_threshold = config.multipart_threshold
        self.part_size = config.part_size
        logger.info(f"ObsStorageBackend initialized: bucket={self.bucket_name} prefix={self.prefixer.prefix!r}")

    # --- 存在確認 ---

    def file_exists(self, path: str) -> bool:
        location = self.prefixer.prefix_path(path)
        try:
            self.client.head_object(self.bucket_name, location)
            return True
        except Exception as e:
            logger.debug(f"OBS object not found or unreachable: {location} - {e}")
            return False

    def directory_exists(self, path: str) -> bool:
        location = self.prefixer.prefix_directory_path(path)
        try:
            listing = self.client.list_objects(self.bucket_name, prefix=location, max_keys=1)
            return len(listing.objects) > 0
        except Exception as e:
            logger.debug(f"OBS directory check failed: {location} - {e}")
            return False

    # --- 読み取り ---

    def read(self, path: str) -> bytes:
        location = self.prefixer.prefix_path(path)
        try:
            return self.client.get_object(self.bucket_name, location).body
        except ObsError as e:
            logger.error(f"OBS read failed: {location} - {e}")
            raise OperationFailure.read_failed(path, str(e), e) from e

    # --- 書き込み ---

    def write(self, path: str, contents: Union[bytes, str], config: WriteConfig = None) -> None:
        if isinstance(contents, str):
            contents = contents.encode('utf-8')
        self.write_stream(path, io.BytesIO(contents), config)

    def write_stream(self, path: str, stream: BinaryIO, config: WriteConfig = None) -> None:
        location = self.prefixer.prefix_path(path)
        headers = self._headers_from_config(config)
        try:
            head = self._read_chunk(stream, self.multipart_threshold)
            if len(head) < self.multipart_threshold:
                self.client.put_object(self.bucket_name, location, head, headers)
            else:
                self._multipart_upload(location, head, stream, headers)
            logger.debug(f"OBS upload success: {location}")
        except ObsError as e:
            logger.error(f"OBS upload failed: {location} - {e}")
            raise OperationFailure.write_failed(path, str(e), e) from e
        except (OSError, ValueError) as e:
            raise OperationFailure.write_failed(path, f"Unable to read stream contents: {e}", e) from e

    def _multipart_upload(self, location: str, head: bytes, stream: BinaryIO, headers: Dict[str, str]) -> None:
        """大きなデータを part_size ごとに分割してアップロード（失敗時は中止）"""
        upload = self.client.initiate_multipart_upload(self.bucket_name, location, headers)
        parts: List[UploadedPart] = []
        buffer = head
        try:
            while True:
                while len(buffer) >= self.part_size:
                    parts.append(self._upload_part(upload, len(parts) + 1, buffer[:self.part_size]))
                    buffer = buffer[self.part_size:]
                chunk = self._read_chunk(stream, self.part_size)
                if not chunk:
                    break
                buffer += chunk
            if buffer or not parts:
                parts.append(self._upload_part(upload, len(parts) + 1, buffer))
            self.client.complete_multipart_upload(self.bucket_name, location, upload.upload_id, parts)
            logger.info(f"OBS multipart upload completed: {location} parts={len(parts)}")
        except Exception:
            self._abort_multipart_upload(upload)
            raise

    def _upload_part(self, upload: MultipartUpload, part_number: int, content: bytes) -> UploadedPart:
        return self.client.upload_part(self.bucket_name, upload.key, upload.upload_id, part_number, content)

    def _abort_multipart_upload(self, upload: MultipartUpload) -> None:
        try:
            self.client.abort_multipart_upload(self.bucket_name, upload.key, upload.upload_id)
        except ObsError as e:
            logger.warning(f"OBS multipart abort failed: {upload.key} upload_id={upload.upload_id} - {e}")

    @staticmethod
    def _read_chunk(stream: BinaryIO, size: int) -> bytes:
        """ストリームから最大 size バイト読み込む"""
        data = b''
        while len(data) < size:
            chunk = stream.read(size - len(data))
            if not chunk:
                break
            if isinstance(chunk, str):
                chunk = chunk.encode('utf-8')
            data += chunk
        return data

    @staticmethod
    def _headers_from_config(config: WriteConfig) -> Dict[str, str]:
        """書き込み設定をリクエストヘッダーに変換"""
        headers: Dict[str, str] = {}
        if not config:
            return headers
        if config.get('content_type'):
            headers['Content-Type'] = config['content_type']
        if config.get('storage_class'):
            headers['x-obs-storage-class'] = config['storage_class']
        if config.get('acl'):
            headers['x-obs-acl'] = config['acl']
        metadata = config.get('metadata')
        if isinstance(metadata, dict):
            for key, value in metadata.items():
                headers[f"{OBS_META_PREFIX}{key}"] = str(value)
        return headers

    # --- 削除 ---

    def delete(self, path: str) -> None:
        location = self.prefixer.prefix_path(path)
        try:
            self.client.delete_object(self.bucket_name, location)
        except ObsError as e:
            logger.error(f"OBS delete failed: {location} - {e}")
            raise OperationFailure.delete_failed(path, str(e), e) from e

    def delete_directory(self, path: str) -> None:
        location = self.prefixer.prefix_directory_path(path)
        try:
            keys = list(self._iter_keys(location))
            for start in range(0, len(keys), MAX_DELETE_OBJECTS):
                result = self.client.delete_objects(self.bucket_name, keys[start:start + MAX_DELETE_OBJECTS])
                if result.errors:
                    first = result.errors[0]
                    raise OperationFailure.delete_directory_failed(
                        path, f"{len(result.errors)} objects could not be deleted: {first.key} ({first.code})"
                    )
            logger.debug(f"OBS directory deleted: {location} objects={len(keys)}")
        except ObsError as e:
            logger.error(f"OBS delete_directory failed: {location} - {e}")
            raise OperationFailure.delete_directory_failed(path, str(e), e) from e

    def _iter_keys(self, location: str) -> Iterator[str]:
        """プレフィックス配下の全キーをページをまたいで取得"""
        marker = None
        while True:
            listing = self.client.list_objects(self.bucket_name, prefix=location, marker=marker)
            if marker is not None and listing.next_marker == marker:
                break
            for summary in listing.objects:
                yield summary.key
            if listing.next_marker is None:
                break
            marker = listing.next_marker

    # --- ディレクトリ ---

    def create_directory(self, path: str, config: WriteConfig = None) -> None:
        location = self.prefixer.prefix_directory_path(path)
        try:
            self.client.put_object(self.bucket_name, location, b'', self._headers_from_config(config))
        except ObsError as e:
            logger.error(f"OBS create_directory failed: {location} - {e}")
            raise OperationFailure.create_directory_failed(path, str(e), e) from e

    def list_contents(self, path: str, deep: bool = False) -> Iterator[StorageAttributes]:
        location = self.prefixer.prefix_directory_path(path)
        delimiter = None if deep else DIRECTORY_SEPARATOR
        marker = None
        while True:
            listing = self._list_page(path, location, delimiter, marker)
            # 同じマーカーを返すページは前ページの繰り返しなので返さない
            if marker is not None and listing.next_marker == marker:
                logger.warning(f"OBS listing marker did not advance: {location} marker={marker}")
                break

            yield from self._files_from_listing(listing)
            if not deep:
                yield from self._directories_from_listing(listing)

            if listing.next_marker is None:
                break
            marker = listing.next_marker

    def _list_page(self, path: str, location: str, delimiter: Optional[str], marker: Optional[str]) -> ObjectListing:
        try:
            return self.client.list_objects(
                self.bucket_name, prefix=location, delimiter=delimiter, marker=marker
            )
        except ObsError as e:
            logger.error(f"OBS list_objects failed: {location} - {e}")
            raise OperationFailure.list_failed(path, str(e), e) from e

    def _files_from_listing(self, listing: ObjectListing) -> Iterator[FileAttributes]:
        for summary in listing.objects:
            # ディレクトリマーカーはスキップ
            if summary.key.endswith(DIRECTORY_SEPARATOR):
                continue
            yield FileAttributes(
                path=self.prefixer.strip_prefix(summary.key),
                file_size=summary.size,
                last_modified=summary.last_modified,
            )

    def _directories_from_listing(self, listing: ObjectListing) -> Iterator[DirectoryAttributes]:
        for prefix in listing.common_prefixes:
            yield DirectoryAttributes(path=self.prefixer.strip_directory_prefix(prefix))

    # --- 公開範囲 ---

    def set_visibility(self, path: str, visibility: str) -> None:
        raise OperationFailure.visibility_unsupported(
            path, "Huawei OBS does not support visibility changes through ACL."
        )

    def visibility(self, path: str) -> FileAttributes:
        return FileAttributes(path=path, visibility=Visibility.PRIVATE)

    # --- メタデータ ---

    def _head(self, path: str, attribute: str) -> ObjectMetadata:
        location = self.prefixer.prefix_path(path)
        try:
            return self.client.head_object(self.bucket_name, location)
        except ObsError as e:
            raise OperationFailure.metadata_unavailable(path, f"{attribute}: {e}", e) from e

    def mime_type(self, path: str) -> FileAttributes:
        metadata = self._head(path, 'mime_type')
        if not metadata.content_type:
            raise OperationFailure.metadata_unavailable(path, 'mime_type: no Content-Type returned')
        return FileAttributes(path=path, mime_type=metadata.content_type, extra_metadata=metadata.metadata)

    def last_modified(self, path: str) -> FileAttributes:
        metadata = self._head(path, 'last_modified')
        if metadata.last_modified is None:
            raise OperationFailure.metadata_unavailable(path, 'last_modified: no Last-Modified returned')
        return FileAttributes(path=path, last_modified=metadata.last_modified, extra_metadata=metadata.metadata)

    def file_size(self, path: str) -> FileAttributes:
        metadata = self._head(path, 'file_size')
        if metadata.content_length is None:
            raise OperationFailure.metadata_unavailable(path, 'file_size: no Content-Length returned')
        return FileAttributes(path=path, file_size=metadata.content_length, extra_metadata=metadata.metadata)

    # --- コピー ---

    def copy(self, source: str, destination: str, config: WriteConfig = None) -> None:
        source_location = self.prefixer.prefix_path(source)
        destination_location = self.prefixer.prefix_path(destination)
        headers = self._headers_from_config(config)
        if headers:
            headers['x-obs-metadata-directive'] = 'REPLACE'
        try:
            # サーバー側でコピーする（ダウンロード・再アップロードしない）
            self.client.copy_object(
                self.bucket_name, source_location, self.bucket_name, destination_location, headers
            )
        except ObsError as e:
            logger.error(f"OBS copy failed: {source_location} -> {destination_location} - {e}")
            raise OperationFailure.copy_failed(source, destination, e) from e

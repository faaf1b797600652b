"""S3ストレージバックエンド

AWS S3およびS3互換ストレージ（MinIO等）に対応。
OBSバックエンドと同じディレクトリ規約（"/" 終端のディレクトリマーカー）に従う。
"""

import logging
from typing import Any, Dict, Iterator, Union

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..config import S3Config
from ..exceptions import OperationFailure
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

_ALL_USERS_URI = 'http://acs.amazonaws.com/groups/global/AllUsers'
_ACLS = {
    Visibility.PUBLIC: 'public-read',
    Visibility.PRIVATE: 'private',
}
_S3_ERRORS = (ClientError, BotoCoreError)


@BackendRegistry.register("s3")
class S3StorageBackend(StorageBackend):
    """S3ストレージバックエンド"""

    def __init__(self, config: S3Config = None):
        """
        S3バックエンドを初期化

        Args:
            config: S3設定。Noneの場合は環境変数から読み込み
        """
        if config is None:
            config = S3Config.from_env()

        client_kwargs = {
            'aws_access_key_id': config.access_key_id,
            'aws_secret_access_key': config.secret_access_key,
            'region_name': config.region
        }

        if config.endpoint_url:
            client_kwargs['endpoint_url'] = config.endpoint_url

        self.client = boto3.client('s3', **client_kwargs)
        self.bucket_name = config.bucket_name
        self.prefixer = PathPrefixer(config.prefix)
        logger.info(f"S3StorageBackend initialized: bucket={self.bucket_name}")

    @staticmethod
    def _extra_args(config: WriteConfig) -> Dict[str, Any]:
        """書き込み設定をboto3の引数に変換"""
        args: Dict[str, Any] = {}
        if not config:
            return args
        if config.get('content_type'):
            args['ContentType'] = config['content_type']
        if config.get('storage_class'):
            args['StorageClass'] = config['storage_class']
        if config.get('acl'):
            args['ACL'] = config['acl']
        if config.get('metadata'):
            args['Metadata'] = {str(k): str(v) for k, v in config['metadata'].items()}
        return args

    def file_exists(self, path: str) -> bool:
        try:
            self.client.head_object(Bucket=self.bucket_name, Key=self.prefixer.prefix_path(path))
            return True
        except Exception as e:
            logger.debug(f"S3 object not found or unreachable: {path} - {e}")
            return False

    def directory_exists(self, path: str) -> bool:
        try:
            response = self.client.list_objects_v2(
                Bucket=self.bucket_name,
                Prefix=self.prefixer.prefix_directory_path(path),
                MaxKeys=1
            )
            return len(response.get('Contents', [])) > 0
        except Exception as e:
            logger.debug(f"S3 directory check failed: {path} - {e}")
            return False

    def read(self, path: str) -> bytes:
        try:
            response = self.client.get_object(Bucket=self.bucket_name, Key=self.prefixer.prefix_path(path))
            return response['Body'].read()
        except _S3_ERRORS as e:
            logger.error(f"S3 load failed: {path} - {e}")
            raise OperationFailure.read_failed(path, str(e), e) from e

    def write(self, path: str, contents: Union[bytes, str], config: WriteConfig = None) -> None:
        if isinstance(contents, str):
            contents = contents.encode('utf-8')
        args = self._extra_args(config)
        args.setdefault('ContentType', 'application/octet-stream')
        try:
            self.client.put_object(
                Bucket=self.bucket_name,
                Key=self.prefixer.prefix_path(path),
                Body=contents,
                **args
            )
            logger.debug(f"S3 upload success: {path}")
        except _S3_ERRORS as e:
            logger.error(f"S3 upload failed: {path} - {e}")
            raise OperationFailure.write_failed(path, str(e), e) from e

    def delete(self, path: str) -> None:
        try:
            self.client.delete_object(Bucket=self.bucket_name, Key=self.prefixer.prefix_path(path))
        except _S3_ERRORS as e:
            logger.error(f"S3 delete failed: {path} - {e}")
            raise OperationFailure.delete_failed(path, str(e), e) from e

    def delete_directory(self, path: str) -> None:
        prefix = self.prefixer.prefix_directory_path(path)
        try:
            paginator = self.client.get_paginator('list_objects_v2')
            keys = [
                obj['Key']
                for page in paginator.paginate(Bucket=self.bucket_name, Prefix=prefix)
                for obj in page.get('Contents', [])
            ]
            for start in range(0, len(keys), 1000):
                response = self.client.delete_objects(
                    Bucket=self.bucket_name,
                    Delete={'Objects': [{'Key': key} for key in keys[start:start + 1000]]}
                )
                errors = response.get('Errors', [])
                if errors:
                    raise OperationFailure.delete_directory_failed(
                        path, f"{len(errors)} objects could not be deleted: {errors[0].get('Key')}"
                    )
        except _S3_ERRORS as e:
            logger.error(f"S3 delete_directory failed: {prefix} - {e}")
            raise OperationFailure.delete_directory_failed(path, str(e), e) from e

    def create_directory(self, path: str, config: WriteConfig = None) -> None:
        try:
            self.client.put_object(
                Bucket=self.bucket_name,
                Key=self.prefixer.prefix_directory_path(path),
                Body=b'',
                **self._extra_args(config)
            )
        except _S3_ERRORS as e:
            logger.error(f"S3 create_directory failed: {path} - {e}")
            raise OperationFailure.create_directory_failed(path, str(e), e) from e

    def list_contents(self, path: str, deep: bool = False) -> Iterator[StorageAttributes]:
        params = {
            'Bucket': self.bucket_name,
            'Prefix': self.prefixer.prefix_directory_path(path),
        }
        if not deep:
            params['Delimiter'] = '/'

        try:
            pages = self.client.get_paginator('list_objects_v2').paginate(**params)
            for page in pages:
                for obj in page.get('Contents', []):
                    if obj['Key'].endswith('/'):
                        continue
                    yield FileAttributes(
                        path=self.prefixer.strip_prefix(obj['Key']),
                        file_size=obj.get('Size'),
                        last_modified=obj.get('LastModified'),
                    )
                if not deep:
                    for common_prefix in page.get('CommonPrefixes', []):
                        yield DirectoryAttributes(
                            path=self.prefixer.strip_directory_prefix(common_prefix['Prefix'])
                        )
        except _S3_ERRORS as e:
            logger.error(f"S3 list_contents failed: {path} - {e}")
            raise OperationFailure.list_failed(path, str(e), e) from e

    def set_visibility(self, path: str, visibility: str) -> None:
        if visibility not in _ACLS:
            raise OperationFailure.visibility_unsupported(path, f"Unknown visibility: {visibility}")
        try:
            self.client.put_object_acl(
                Bucket=self.bucket_name,
                Key=self.prefixer.prefix_path(path),
                ACL=_ACLS[visibility]
            )
        except _S3_ERRORS as e:
            raise OperationFailure.visibility_unsupported(path, str(e)) from e

    def visibility(self, path: str) -> FileAttributes:
        try:
            response = self.client.get_object_acl(Bucket=self.bucket_name, Key=self.prefixer.prefix_path(path))
        except _S3_ERRORS as e:
            raise OperationFailure.metadata_unavailable(path, f"visibility: {e}", e) from e

        visibility = Visibility.PRIVATE
        for grant in response.get('Grants', []):
            grantee = grant.get('Grantee', {})
            if grantee.get('URI') == _ALL_USERS_URI and grant.get('Permission') == 'READ':
                visibility = Visibility.PUBLIC
                break
        return FileAttributes(path=path, visibility=visibility)

    def _head(self, path: str, attribute: str) -> Dict[str, Any]:
        try:
            return self.client.head_object(Bucket=self.bucket_name, Key=self.prefixer.prefix_path(path))
        except _S3_ERRORS as e:
            raise OperationFailure.metadata_unavailable(path, f"{attribute}: {e}", e) from e

    def mime_type(self, path: str) -> FileAttributes:
        response = self._head(path, 'mime_type')
        return FileAttributes(
            path=path,
            mime_type=response.get('ContentType', 'application/octet-stream'),
            extra_metadata=response.get('Metadata') or {},
        )

    def last_modified(self, path: str) -> FileAttributes:
        response = self._head(path, 'last_modified')
        return FileAttributes(path=path, last_modified=response.get('LastModified'))

    def file_size(self, path: str) -> FileAttributes:
        response = self._head(path, 'file_size')
        return FileAttributes(path=path, file_size=response.get('ContentLength'))

    def copy(self, source: str, destination: str, config: WriteConfig = None) -> None:
        args = self._extra_args(config)
        if args:
            args['MetadataDirective'] = 'REPLACE'
        try:
            self.client.copy_object(
                Bucket=self.bucket_name,
                Key=self.prefixer.prefix_path(destination),
                CopySource={'Bucket': self.bucket_name, 'Key': self.prefixer.prefix_path(source)},
                **args
            )
        except _S3_ERRORS as e:
            logger.error(f"S3 copy failed: {source} -> {destination} - {e}")
            raise OperationFailure.copy_failed(source, destination, e) from e

    def generate_presigned_url(self, path: str, expires_in: int = 3600) -> str:
        """事前署名URLを生成する"""
        return self.client.generate_presigned_url(
            'get_object',
            Params={
                'Bucket': self.bucket_name,
                'Key': self.prefixer.prefix_path(path)
            },
            ExpiresIn=expires_in
        )

"""Huawei OBSクライアント

OBS APIとのHTTP通信をラップする同期クライアント。
全てのリクエストは Date/Host ヘッダーを付与して署名し、1回だけ送信する（リトライなし）。

参考: https://support.huaweicloud.com/api-obs/
"""

import base64
import hashlib
import logging
import time
import xml.etree.ElementTree as ET
from email.utils import formatdate
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union
from urllib.parse import quote
from xml.sax.saxutils import escape

import requests

from ..config import ObsConfig, DEFAULT_OBS_REGION
from ..exceptions import (
    StorageConfigError,
    ObsTransportError,
    ObsServiceError,
    ObsParseError,
)
from .models import (
    ObsResponse,
    ObjectMetadata,
    ObjectSummary,
    ObjectListing,
    BucketInfo,
    MultipartUpload,
    UploadedPart,
    DeleteError,
    DeleteResult,
    parse_iso_datetime,
)
from .signature import ObsSignature

logger = logging.getLogger(__name__)

# 一括削除で1リクエストに指定できるオブジェクト数の上限
MAX_DELETE_OBJECTS = 1000

_XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>'
_XML_ENTITIES = {'"': '&quot;', "'": '&apos;'}

DeleteTarget = Union[str, Mapping[str, str]]


def xml_escape(value: Any) -> str:
    """XML特殊文字（& < > " '）をエスケープ"""
    return escape(str(value), _XML_ENTITIES)


def _strip_namespaces(root: ET.Element) -> ET.Element:
    for element in root.iter():
        if isinstance(element.tag, str) and '}' in element.tag:
            element.tag = element.tag.split('}', 1)[1]
    return root


def parse_xml(body: bytes) -> ET.Element:
    """XML応答を解析（名前空間は除去する）"""
    if not body:
        raise ObsParseError("Failed to parse XML response: empty body")
    try:
        root = ET.fromstring(body)
    except ET.ParseError as e:
        raise ObsParseError(f"Failed to parse XML response: {e}") from e
    return _strip_namespaces(root)


def _text(element: ET.Element, path: str, default: str = '') -> str:
    found = element.find(path)
    if found is None or found.text is None:
        return default
    return found.text


def _int(element: ET.Element, path: str, default: int = 0) -> int:
    value = _text(element, path)
    try:
        return int(value)
    except ValueError:
        return default


class ObsClient:
    """
    Huawei OBSクライアント

    使用例:
        client = ObsClient("ak", "sk", region="cn-north-4")
        client.put_object("bucket", "path/to/file.txt", b"hello")
        listing = client.list_objects("bucket", prefix="path/", delimiter="/")
    """

    def __init__(
        self,
        access_key_id: str,
        secret_access_key: str,
        region: Optional[str] = None,
        endpoint: Optional[str] = None,
        security_token: Optional[str] = None,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        if not access_key_id or not secret_access_key:
            raise StorageConfigError("Missing access key or secret key")

        self.region = region or DEFAULT_OBS_REGION
        self.scheme = 'https'
        endpoint = endpoint or f"obs.{self.region}.myhuaweicloud.com"
        if endpoint.startswith('http://'):
            self.scheme = 'http'
        self.endpoint = endpoint.replace('https://', '').replace('http://', '').rstrip('/')

        self._signature = ObsSignature(access_key_id, secret_access_key)
        self._security_token = security_token
        self._timeout = timeout
        self._session = session or requests.Session()

    @classmethod
    def from_config(cls, config: ObsConfig, session: Optional[requests.Session] = None) -> 'ObsClient':
        """ObsConfigからクライアントを生成"""
        return cls(
            access_key_id=config.access_key_id,
            secret_access_key=config.secret_access_key,
            region=config.region,
            endpoint=config.resolved_endpoint,
            security_token=config.security_token,
            timeout=config.timeout,
            session=session,
        )

    # --- バケット操作 ---

    def list_buckets(self) -> List[BucketInfo]:
        """バケット一覧を取得"""
        response = self._request('GET', '', '')
        root = parse_xml(response.body)
        return [
            BucketInfo(
                name=_text(bucket, 'Name'),
                creation_date=parse_iso_datetime(_text(bucket, 'CreationDate')),
            )
            for bucket in root.findall('Buckets/Bucket')
        ]

    def create_bucket(
        self,
        bucket: str,
        location: Optional[str] = None,
        storage_class: Optional[str] = None,
        acl: Optional[str] = None,
    ) -> ObsResponse:
        """
        バケットを作成

        Args:
            bucket: バケット名
            location: リージョン
            storage_class: ストレージクラス（STANDARD/WARM/COLD）
            acl: アクセス制御（private/public-read/public-read-write）
        """
        headers = {}
        body = b''
        if location:
            body = (
                f'<CreateBucketConfiguration xmlns="http://obs.{self.region}.myhuaweicloud.com/doc/2015-06-30/">'
                f'<Location>{xml_escape(location)}</Location>'
                f'</CreateBucketConfiguration>'
            ).encode('utf-8')
            headers['Content-Type'] = 'application/xml'
        if storage_class:
            headers['x-obs-storage-class'] = storage_class
        if acl:
            headers['x-obs-acl'] = acl
        return self._request('PUT', bucket, '', headers=headers, body=body)

    def delete_bucket(self, bucket: str) -> ObsResponse:
        """バケットを削除（バケットが空である必要がある）"""
        return self._request('DELETE', bucket, '')

    # --- オブジェクト操作 ---

    def put_object(
        self,
        bucket: str,
        key: str,
        content: Union[bytes, str],
        headers: Optional[Mapping[str, str]] = None,
    ) -> ObsResponse:
        """
        オブジェクトをアップロード

        Args:
            headers: Content-Type, x-obs-acl, x-obs-storage-class, x-obs-meta-* など
        """
        headers = dict(headers or {})
        if not any(name.lower() == 'content-type' for name in headers):
            headers['Content-Type'] = 'application/octet-stream'
        return self._request('PUT', bucket, key, headers=headers, body=content)

    def get_object(self, bucket: str, key: str, query: Optional[Mapping[str, Optional[str]]] = None) -> ObsResponse:
        """オブジェクトを取得（query には versionId 等を指定可能）"""
        return self._request('GET', bucket, key, query=query)

    def head_object(self, bucket: str, key: str) -> ObjectMetadata:
        """オブジェクトのメタデータを取得"""
        response = self._request('HEAD', bucket, key)
        return ObjectMetadata.from_headers(response.headers)

    def delete_object(self, bucket: str, key: str, version_id: Optional[str] = None) -> ObsResponse:
        """オブジェクトを削除"""
        query = {'versionId': version_id} if version_id else None
        return self._request('DELETE', bucket, key, query=query)

    def delete_objects(self, bucket: str, objects: Sequence[DeleteTarget]) -> DeleteResult:
        """
        オブジェクトを一括削除

        Args:
            objects: キー文字列、または {'Key': ..., 'VersionId': ...} のリスト（最大1000件）
        """
        if len(objects) > MAX_DELETE_OBJECTS:
            raise ValueError(f"At most {MAX_DELETE_OBJECTS} objects can be deleted per request")

        xml = _XML_DECLARATION + '<Delete>'
        for target in objects:
            if isinstance(target, str):
                target = {'Key': target}
            xml += '<Object>'
            xml += f"<Key>{xml_escape(target['Key'])}</Key>"
            if target.get('VersionId'):
                xml += f"<VersionId>{xml_escape(target['VersionId'])}</VersionId>"
            xml += '</Object>'
        xml += '</Delete>'

        body = xml.encode('utf-8')
        headers = {
            'Content-Type': 'application/xml',
            'Content-MD5': base64.b64encode(hashlib.md5(body).digest()).decode('ascii'),
        }
        response = self._request('POST', bucket, '', query={'delete': ''}, headers=headers, body=body)
        if not response.body:
            return DeleteResult()

        root = parse_xml(response.body)
        return DeleteResult(
            deleted=[_text(item, 'Key') for item in root.findall('Deleted')],
            errors=[
                DeleteError(
                    key=_text(item, 'Key'),
                    code=_text(item, 'Code'),
                    message=_text(item, 'Message'),
                )
                for item in root.findall('Error')
            ],
        )

    def list_objects(
        self,
        bucket: str,
        prefix: Optional[str] = None,
        delimiter: Optional[str] = None,
        marker: Optional[str] = None,
        max_keys: Optional[int] = None,
    ) -> ObjectListing:
        """
        バケット内のオブジェクトを1ページ分列挙

        Returns:
            ObjectListing: next_marker が None でなければ次ページが存在する
        """
        query = {
            'prefix': prefix or None,
            'delimiter': delimiter,
            'marker': marker,
            'max-keys': str(max_keys) if max_keys is not None else None,
        }
        response = self._request('GET', bucket, '', query=query)
        root = parse_xml(response.body)

        objects = [
            ObjectSummary(
                key=_text(content, 'Key'),
                size=_int(content, 'Size'),
                last_modified=parse_iso_datetime(_text(content, 'LastModified')),
                etag=_text(content, 'ETag'),
                storage_class=_text(content, 'StorageClass'),
            )
            for content in root.findall('Contents')
        ]
        common_prefixes = [_text(item, 'Prefix') for item in root.findall('CommonPrefixes')]
        is_truncated = _text(root, 'IsTruncated').lower() == 'true'

        next_marker = None
        if is_truncated:
            # delimiter 未指定時は NextMarker が返らないため最後のキーから続ける
            next_marker = _text(root, 'NextMarker') or None
            if next_marker is None:
                candidates = [o.key for o in objects] + common_prefixes
                next_marker = max(candidates) if candidates else None

        return ObjectListing(
            name=_text(root, 'Name'),
            prefix=_text(root, 'Prefix'),
            max_keys=_int(root, 'MaxKeys'),
            is_truncated=is_truncated,
            objects=objects,
            common_prefixes=common_prefixes,
            next_marker=next_marker,
        )

    def copy_object(
        self,
        source_bucket: str,
        source_key: str,
        dest_bucket: str,
        dest_key: str,
        headers: Optional[Mapping[str, str]] = None,
    ) -> ObsResponse:
        """サーバー側でオブジェクトをコピー"""
        headers = dict(headers or {})
        headers['x-obs-copy-source'] = f"/{source_bucket}/{quote(source_key.lstrip('/'), safe='/')}"
        return self._request('PUT', dest_bucket, dest_key, headers=headers)

    # --- マルチパートアップロード ---

    def initiate_multipart_upload(
        self,
        bucket: str,
        key: str,
        headers: Optional[Mapping[str, str]] = None,
    ) -> MultipartUpload:
        """マルチパートアップロードを開始し UploadId を取得"""
        response = self._request('POST', bucket, key, query={'uploads': ''}, headers=headers)
        root = parse_xml(response.body)
        upload_id = _text(root, 'UploadId')
        if not upload_id:
            raise ObsParseError("InitiateMultipartUpload response has no UploadId")
        return MultipartUpload(
            bucket=_text(root, 'Bucket', bucket),
            key=_text(root, 'Key', key),
            upload_id=upload_id,
        )

    def upload_part(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        part_number: int,
        content: bytes,
    ) -> UploadedPart:
        """段をアップロード（part_number は1から）"""
        query = {'partNumber': str(part_number), 'uploadId': upload_id}
        response = self._request('PUT', bucket, key, query=query, body=content)
        return UploadedPart(part_number=part_number, etag=response.header('etag', ''))

    def complete_multipart_upload(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        parts: Sequence[UploadedPart],
    ) -> ObsResponse:
        """アップロード済みの段を結合"""
        xml = _XML_DECLARATION + '<CompleteMultipartUpload>'
        for part in parts:
            xml += '<Part>'
            xml += f"<PartNumber>{int(part.part_number)}</PartNumber>"
            xml += f"<ETag>{xml_escape(part.etag)}</ETag>"
            xml += '</Part>'
        xml += '</CompleteMultipartUpload>'

        headers = {'Content-Type': 'application/xml'}
        return self._request(
            'POST', bucket, key, query={'uploadId': upload_id}, headers=headers, body=xml.encode('utf-8')
        )

    def abort_multipart_upload(self, bucket: str, key: str, upload_id: str) -> ObsResponse:
        """マルチパートアップロードを中止"""
        return self._request('DELETE', bucket, key, query={'uploadId': upload_id})

    # --- 内部処理 ---

    def build_url(self, bucket: str, key: str, query: Mapping[str, Optional[str]]) -> str:
        """リクエストURLを組み立て"""
        host = f"{bucket}.{self.endpoint}" if bucket else self.endpoint
        path = '/' + quote(key, safe='/') if key else '/'
        url = f"{self.scheme}://{host}{path}"
        if query:
            url += '?' + self._build_query_string(query)
        return url

    @staticmethod
    def _build_query_string(query: Mapping[str, Optional[str]]) -> str:
        parts = []
        for name, value in query.items():
            if value == '':
                parts.append(quote(name, safe=''))
            else:
                parts.append(f"{quote(name, safe='')}={quote(str(value), safe='')}")
        return '&'.join(parts)

    def _request(
        self,
        method: str,
        bucket: str,
        key: str,
        query: Optional[Mapping[str, Optional[str]]] = None,
        headers: Optional[Mapping[str, str]] = None,
        body: Union[bytes, str] = b'',
    ) -> ObsResponse:
        """
        署名付きHTTPリクエストを送信

        Raises:
            ObsTransportError: 通信に失敗した場合
            ObsServiceError: ステータスコードが300以上の場合
        """
        key = (key or '').lstrip('/')
        query = {name: value for name, value in (query or {}).items() if value is not None}
        headers = dict(headers or {})
        if isinstance(body, str):
            body = body.encode('utf-8')

        host = f"{bucket}.{self.endpoint}" if bucket else self.endpoint
        headers['Date'] = formatdate(usegmt=True)
        headers['Host'] = host
        if self._security_token:
            headers['x-obs-security-token'] = self._security_token

        headers.update(self._signature.sign_request(method, bucket, key, query, headers, body))
        url = self.build_url(bucket, key, query)

        # ヘッダーは値を出さずキー名のみ記録する
        logger.info(
            f"OBS API request: method={method} url={url} "
            f"headers={sorted(headers.keys())} body_size={len(body)}"
        )
        start_time = time.monotonic()
        try:
            raw = self._session.request(method, url, headers=headers, data=body, timeout=self._timeout)
        except (requests.RequestException, ValueError) as e:
            # ValueError: Latin-1で表せないヘッダー値など、送信前に http.client が拒否したもの
            duration_ms = round((time.monotonic() - start_time) * 1000, 2)
            logger.error(f"OBS API transport error: method={method} url={url} error={e} duration_ms={duration_ms}")
            raise ObsTransportError(f"HTTP request failed: {e}") from e

        duration_ms = round((time.monotonic() - start_time) * 1000, 2)
        response = ObsResponse(
            status_code=raw.status_code,
            headers={name.lower(): value for name, value in raw.headers.items()},
            body=raw.content or b'',
        )
        logger.info(
            f"OBS API response: method={method} url={url} status={response.status_code} "
            f"response_size={len(response.body)} duration_ms={duration_ms}"
        )

        if response.status_code >= 300:
            logger.error(
                f"OBS API error response: method={method} url={url} status={response.status_code} "
                f"body={response.body[:1024]!r}"
            )
            raise self._service_error(response)
        return response

    @staticmethod
    def _service_error(response: ObsResponse) -> ObsServiceError:
        error_code = response.header('x-obs-error-code')
        request_id = response.header('x-obs-request-id')
        if response.body:
            try:
                root = parse_xml(response.body)
            except ObsParseError:
                root = None
            if root is not None:
                error_code = _text(root, 'Code') or error_code
                request_id = _text(root, 'RequestId') or request_id
        return ObsServiceError(response.status_code, response.body, error_code, request_id)

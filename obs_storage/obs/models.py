"""OBSクライアントのデータモデル定義

XML応答・レスポンスヘッダーを解析した結果を保持する。
いずれも呼び出しごとに生成され、生成後に変更されない。
"""

from dataclasses import dataclass, field
from datetime import datetime
from email.utils import parsedate_to_datetime
from typing import Dict, List, Mapping, Optional

OBS_META_PREFIX = 'x-obs-meta-'


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """ISO 8601形式（例: 2015-07-01T02:11:19.775Z）を datetime に変換"""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError:
        return None


def parse_http_datetime(value: Optional[str]) -> Optional[datetime]:
    """RFC 1123形式（例: Sat, 12 Oct 2015 08:12:38 GMT）を datetime に変換"""
    if not value:
        return None
    try:
        return parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class ObsResponse:
    """HTTP応答（ヘッダーキーは小文字）"""
    status_code: int
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes = b''

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.headers.get(name.lower(), default)


@dataclass(frozen=True)
class ObjectMetadata:
    """HEAD Objectの結果"""
    content_length: Optional[int]
    content_type: Optional[str]
    last_modified: Optional[datetime]
    etag: Optional[str]
    storage_class: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_headers(cls, headers: Mapping[str, str]) -> 'ObjectMetadata':
        length = headers.get('content-length')
        return cls(
            content_length=int(length) if length is not None and length.isdigit() else None,
            content_type=headers.get('content-type'),
            last_modified=parse_http_datetime(headers.get('last-modified')),
            etag=headers.get('etag'),
            storage_class=headers.get('x-obs-storage-class'),
            metadata={
                key[len(OBS_META_PREFIX):]: value
                for key, value in headers.items()
                if key.startswith(OBS_META_PREFIX)
            },
        )


@dataclass(frozen=True)
class ObjectSummary:
    """List Objectsの Contents 要素"""
    key: str
    size: int
    last_modified: Optional[datetime]
    etag: str
    storage_class: str


@dataclass(frozen=True)
class ObjectListing:
    """List Objectsの1ページ分の結果"""
    name: str
    prefix: str
    max_keys: int
    is_truncated: bool
    objects: List[ObjectSummary] = field(default_factory=list)
    common_prefixes: List[str] = field(default_factory=list)
    next_marker: Optional[str] = None


@dataclass(frozen=True)
class BucketInfo:
    """List Bucketsの Bucket 要素"""
    name: str
    creation_date: Optional[datetime]


@dataclass(frozen=True)
class MultipartUpload:
    """Initiate Multipart Uploadの結果"""
    bucket: str
    key: str
    upload_id: str


@dataclass(frozen=True)
class UploadedPart:
    """アップロード済みの段"""
    part_number: int
    etag: str


@dataclass(frozen=True)
class DeleteError:
    """一括削除で失敗したオブジェクト"""
    key: str
    code: str
    message: str


@dataclass(frozen=True)
class DeleteResult:
    """Delete Objectsの結果"""
    deleted: List[str] = field(default_factory=list)
    errors: List[DeleteError] = field(default_factory=list)

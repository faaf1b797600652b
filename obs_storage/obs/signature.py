"""OBS署名（v1）の計算

Authorization: OBS AccessKeyID:Signature

    StringToSign = HTTP-Verb + "\\n" +
                   Content-MD5 + "\\n" +
                   Content-Type + "\\n" +
                   Date + "\\n" +
                   CanonicalizedHeaders + CanonicalizedResource

    Signature = Base64(HMAC-SHA1(SecretKey, UTF-8(StringToSign)))

I/Oを持たない純粋関数のみで構成する。
"""

import base64
import hashlib
import hmac
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional
from urllib.parse import quote

OBS_HEADER_PREFIX = 'x-obs-'
OBS_DATE_HEADER = 'x-obs-date'

# 署名対象となるサブリソース（クエリパラメータ）の一覧
SUB_RESOURCES = frozenset([
    'CDNNotifyConfiguration', 'acl', 'append', 'attname', 'backtosource', 'cors', 'customdomain', 'delete',
    'deletebucket', 'directcoldaccess', 'encryption', 'inventory', 'length', 'lifecycle', 'location', 'logging',
    'metadata', 'modify', 'name', 'notification', 'partNumber', 'policy', 'position', 'quota', 'rename',
    'replication', 'response-cache-control', 'response-content-disposition', 'response-content-encoding',
    'response-content-language', 'response-content-type', 'response-expires', 'restore', 'storageClass',
    'storagePolicy', 'storageinfo', 'tagging', 'torrent', 'truncate', 'uploadId', 'uploads', 'versionId',
    'versioning', 'versions', 'website', 'x-image-process', 'x-image-save-bucket', 'x-image-save-object',
    'x-obs-security-token', 'object-lock', 'retention',
])


@dataclass(frozen=True)
class SigningContext:
    """署名対象リクエストの情報（リクエストごとに生成し、使い捨て）"""
    method: str
    bucket_name: str = ''
    object_key: str = ''
    query_params: Mapping[str, Optional[str]] = field(default_factory=dict)
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes = b''


def encode_object_key(object_key: str) -> str:
    """
    オブジェクトキーをOBS方式でURLエンコード

    RFC 3986でエンコードした後、%2F を / に戻し、%20 を + に置き換える。
    """
    encoded = quote(object_key, safe='')
    return encoded.replace('%2F', '/').replace('%20', '+')


def extract_sub_resources(query_params: Mapping[str, Optional[str]]) -> Dict[str, Optional[str]]:
    """クエリパラメータからサブリソースのみを抽出"""
    return {key: value for key, value in query_params.items() if key in SUB_RESOURCES}


def build_sub_resource_string(query_params: Mapping[str, Optional[str]]) -> str:
    """サブリソース部分（?key=value&key...）を組み立て"""
    sub_resources = extract_sub_resources(query_params)
    if not sub_resources:
        return ''

    parts = []
    for key in sorted(sub_resources):
        value = sub_resources[key]
        if value is None or value == '':
            parts.append(key)
        else:
            parts.append(f"{key}={value}")
    return '?' + '&'.join(parts)


def build_resource(bucket_name: str, object_key: str, query_params: Mapping[str, Optional[str]] = None) -> str:
    """
    CanonicalizedResourceを組み立て

    Args:
        bucket_name: バケット名（空ならバケット横断のリクエスト）
        object_key: オブジェクトキー
        query_params: クエリパラメータ（サブリソース以外は無視される）

    Returns:
        str: 例 "/bucket/path/to/object.txt?acl"
    """
    resource = '/'
    if bucket_name:
        resource += bucket_name + '/'
        if object_key:
            resource += encode_object_key(object_key)
    return resource + build_sub_resource_string(query_params or {})


def canonicalize_headers(headers: Mapping[str, str]) -> Dict[str, str]:
    """x-obs- で始まるヘッダーを小文字キー・前後空白除去の形で抽出"""
    canonical = {}
    for key, value in headers.items():
        lower_key = key.strip().lower()
        if lower_key.startswith(OBS_HEADER_PREFIX):
            canonical[lower_key] = str(value).strip()
    return canonical


def string_to_sign(context: SigningContext) -> str:
    """署名対象文字列を組み立て"""
    content_md5 = ''
    content_type = ''
    date = ''
    for key, value in context.headers.items():
        lower_key = key.strip().lower()
        if lower_key == 'content-md5':
            content_md5 = str(value)
        elif lower_key == 'content-type':
            content_type = str(value)
        elif lower_key == 'date':
            date = str(value)

    canonical_headers = canonicalize_headers(context.headers)
    # x-obs-date がある場合、Date は空文字として扱う
    if OBS_DATE_HEADER in canonical_headers:
        date = ''

    lines = [context.method.upper(), content_md5, content_type, date]
    result = '\n'.join(lines) + '\n'
    for key in sorted(canonical_headers):
        result += f"{key}:{canonical_headers[key]}\n"
    result += build_resource(context.bucket_name, context.object_key, context.query_params)
    return result


def calculate_signature(secret_key: str, text: str) -> str:
    """HMAC-SHA1で署名し、Base64エンコードした文字列を返す"""
    digest = hmac.new(secret_key.encode('utf-8'), text.encode('utf-8'), hashlib.sha1).digest()
    return base64.b64encode(digest).decode('ascii')


def sign(context: SigningContext, secret_key: str, access_key_id: str) -> str:
    """Authorizationヘッダー値（"OBS ak:signature"）を返す"""
    signature = calculate_signature(secret_key, string_to_sign(context))
    return f"OBS {access_key_id}:{signature}"


class ObsSignature:
    """認証情報を保持してリクエストに署名する"""

    def __init__(self, access_key_id: str, secret_access_key: str):
        self._access_key_id = access_key_id
        self._secret_access_key = secret_access_key

    def sign_request(
        self,
        method: str,
        bucket_name: str,
        object_key: str,
        query_params: Mapping[str, Optional[str]],
        headers: Mapping[str, str],
        body: bytes = b'',
    ) -> Dict[str, str]:
        """
        リクエストに署名する

        Returns:
            Dict[str, str]: {'Authorization': 'OBS ak:signature'}
        """
        context = SigningContext(
            method=method,
            bucket_name=bucket_name,
            object_key=object_key,
            query_params=dict(query_params),
            headers=dict(headers),
            body=body,
        )
        return {'Authorization': sign(context, self._secret_access_key, self._access_key_id)}

"""ObsClient のユニットテスト

HTTP通信は requests.Session のモックで置き換える。
"""

import base64
import hashlib

import pytest
import requests

from obs_storage.config import ObsConfig
from obs_storage.exceptions import (
    StorageConfigError,
    ObsTransportError,
    ObsServiceError,
    ObsParseError,
)
from obs_storage.obs.client import ObsClient, MAX_DELETE_OBJECTS
from obs_storage.obs.models import UploadedPart

NS = 'xmlns="http://obs.myhwclouds.com/doc/2015-06-30/"'


def _sent(session):
    """最後に送信されたリクエストを (method, url, headers, body) で返す"""
    args, kwargs = session.request.call_args
    return args[0], args[1], kwargs['headers'], kwargs['data']


class TestClientInit:
    """コンストラクタのテスト"""

    @pytest.mark.parametrize('ak,sk', [('', 'sk'), ('ak', ''), ('', '')])
    def test_missing_credentials(self, ak, sk):
        """異常系: 認証情報が空"""
        with pytest.raises(StorageConfigError):
            ObsClient(ak, sk)

    def test_default_endpoint(self):
        """正常系: リージョンからエンドポイントを組み立て"""
        client = ObsClient('ak', 'sk', region='ap-southeast-1')

        assert client.endpoint == 'obs.ap-southeast-1.myhuaweicloud.com'
        assert client.scheme == 'https'

    def test_http_endpoint(self):
        """正常系: http:// 指定時はスキームを引き継ぐ"""
        client = ObsClient('ak', 'sk', endpoint='http://localhost:9000/')

        assert client.endpoint == 'localhost:9000'
        assert client.scheme == 'http'


class TestRequest:
    """署名付きリクエストのテスト"""

    def test_put_object_request(self, obs_client, http_session):
        """正常系: URL・署名ヘッダー・ボディ"""
        obs_client.put_object('bucket', '/path/to/file name.txt', b'hello')

        method, url, headers, body = _sent(http_session)
        assert method == 'PUT'
        assert url == 'https://bucket.obs.cn-north-4.myhuaweicloud.com/path/to/file%20name.txt'
        assert headers['Host'] == 'bucket.obs.cn-north-4.myhuaweicloud.com'
        assert headers['Date'].endswith('GMT')
        assert headers['Content-Type'] == 'application/octet-stream'
        assert headers['Authorization'].startswith('OBS testAccessKey:')
        assert body == b'hello'

    def test_put_object_keeps_content_type(self, obs_client, http_session):
        """正常系: 指定した Content-Type を使う"""
        obs_client.put_object('bucket', 'a.json', '{}', {'Content-Type': 'application/json'})

        _, _, headers, body = _sent(http_session)
        assert headers['Content-Type'] == 'application/json'
        assert body == b'{}'

    def test_timeout_passed(self, obs_client, http_session):
        """正常系: タイムアウトを指定して送信"""
        obs_client.delete_object('bucket', 'a.txt')

        assert http_session.request.call_args.kwargs['timeout'] == 30.0

    def test_security_token(self, http_session):
        """正常系: セキュリティトークンを付与"""
        config = ObsConfig(
            access_key_id='ak', secret_access_key='sk', bucket_name='bucket', security_token='token'
        )
        client = ObsClient.from_config(config, session=http_session)

        client.get_object('bucket', 'a.txt')

        _, _, headers, _ = _sent(http_session)
        assert headers['x-obs-security-token'] == 'token'

    def test_query_string(self, obs_client, http_session):
        """正常系: 値なしクエリはキーのみ、None は送らない"""
        obs_client.delete_object('bucket', 'a.txt', version_id='v1')
        _, url, _, _ = _sent(http_session)
        assert url.endswith('/a.txt?versionId=v1')

        assert obs_client.build_url('bucket', 'a.txt', {'uploads': ''}).endswith('/a.txt?uploads')

    def test_service_error(self, obs_client, http_session, http_response):
        """異常系: ステータス300以上は ObsServiceError"""
        http_session.request.return_value = http_response(
            404,
            {'x-obs-request-id': 'header-id'},
            b'<Error><Code>NoSuchKey</Code><Message>missing</Message><RequestId>req-1</RequestId></Error>',
        )

        with pytest.raises(ObsServiceError) as exc_info:
            obs_client.get_object('bucket', 'missing.txt')

        error = exc_info.value
        assert error.status_code == 404
        assert error.is_not_found
        assert error.error_code == 'NoSuchKey'
        assert error.request_id == 'req-1'
        assert 'Request failed with status 404' in str(error)

    def test_service_error_without_body(self, obs_client, http_session, http_response):
        """異常系: ボディなし（HEAD）の場合はヘッダーから取得"""
        http_session.request.return_value = http_response(
            403, {'X-Obs-Error-Code': 'AccessDenied', 'X-Obs-Request-Id': 'req-2'}
        )

        with pytest.raises(ObsServiceError) as exc_info:
            obs_client.head_object('bucket', 'a.txt')

        assert exc_info.value.error_code == 'AccessDenied'
        assert exc_info.value.request_id == 'req-2'

    def test_transport_error(self, obs_client, http_session):
        """異常系: 通信失敗は ObsTransportError"""
        http_session.request.side_effect = requests.ConnectionError('connection refused')

        with pytest.raises(ObsTransportError) as exc_info:
            obs_client.get_object('bucket', 'a.txt')

        assert 'connection refused' in str(exc_info.value)

    def test_unencodable_header(self, obs_client, http_session):
        """異常系: 送信できないヘッダー値も ObsTransportError"""
        http_session.request.side_effect = UnicodeEncodeError(
            'latin-1', '山田', 0, 2, 'ordinal not in range(256)'
        )

        with pytest.raises(ObsTransportError) as exc_info:
            obs_client.put_object('bucket', 'a.txt', b'x', {'x-obs-meta-author': '山田'})

        assert isinstance(exc_info.value.__cause__, UnicodeEncodeError)


class TestObjectOperations:
    """オブジェクト操作のテスト"""

    def test_head_object(self, obs_client, http_session, http_response):
        """正常系: ヘッダーからメタデータを取得"""
        http_session.request.return_value = http_response(200, {
            'Content-Length': '11',
            'Content-Type': 'text/plain',
            'Last-Modified': 'Sat, 12 Oct 2015 08:12:38 GMT',
            'ETag': '"abc"',
            'x-obs-meta-owner': 'alice',
        })

        metadata = obs_client.head_object('bucket', 'a.txt')

        assert metadata.content_length == 11
        assert metadata.content_type == 'text/plain'
        assert metadata.last_modified.year == 2015
        assert metadata.etag == '"abc"'
        assert metadata.metadata == {'owner': 'alice'}

    def test_get_object(self, obs_client, http_session, http_response):
        """正常系: ボディを返す"""
        http_session.request.return_value = http_response(200, {}, b'content')

        assert obs_client.get_object('bucket', 'a.txt').body == b'content'

    def test_copy_object(self, obs_client, http_session):
        """正常系: コピー元はURLエンコードして指定"""
        obs_client.copy_object('src', 'dir/a b.txt', 'bucket', 'dir/c.txt')

        method, url, headers, _ = _sent(http_session)
        assert method == 'PUT'
        assert url == 'https://bucket.obs.cn-north-4.myhuaweicloud.com/dir/c.txt'
        assert headers['x-obs-copy-source'] == '/src/dir/a%20b.txt'


class TestListObjects:
    """list_objects のテスト"""

    def test_parse_listing(self, obs_client, http_session, http_response):
        """正常系: Contents と CommonPrefixes を解析"""
        http_session.request.return_value = http_response(200, {}, (
            f'<ListBucketResult {NS}>'
            '<Name>bucket</Name><Prefix>a/</Prefix><MaxKeys>1000</MaxKeys>'
            '<IsTruncated>true</IsTruncated><NextMarker>a/c/</NextMarker>'
            '<Contents><Key>a/file.txt</Key><LastModified>2015-07-01T02:11:19.775Z</LastModified>'
            '<ETag>"e"</ETag><Size>5</Size><StorageClass>STANDARD</StorageClass></Contents>'
            '<CommonPrefixes><Prefix>a/b/</Prefix></CommonPrefixes>'
            '<CommonPrefixes><Prefix>a/c/</Prefix></CommonPrefixes>'
            '</ListBucketResult>'
        ).encode('utf-8'))

        listing = obs_client.list_objects('bucket', prefix='a/', delimiter='/')

        _, url, _, _ = _sent(http_session)
        assert url.endswith('/?prefix=a%2F&delimiter=%2F')
        assert listing.name == 'bucket'
        assert listing.is_truncated
        assert listing.next_marker == 'a/c/'
        assert [o.key for o in listing.objects] == ['a/file.txt']
        assert listing.objects[0].size == 5
        assert listing.objects[0].last_modified.year == 2015
        assert listing.common_prefixes == ['a/b/', 'a/c/']

    def test_truncated_without_next_marker(self, obs_client, http_session, http_response):
        """正常系: NextMarker がなければ最後のキーから続ける"""
        http_session.request.return_value = http_response(200, {}, (
            '<ListBucketResult><Name>bucket</Name><IsTruncated>true</IsTruncated>'
            '<Contents><Key>a/1.txt</Key><Size>1</Size></Contents>'
            '<Contents><Key>a/2.txt</Key><Size>1</Size></Contents>'
            '</ListBucketResult>'
        ).encode('utf-8'))

        assert obs_client.list_objects('bucket', prefix='a/').next_marker == 'a/2.txt'

    def test_empty_prefix_omitted(self, obs_client, http_session, http_response):
        """正常系: 空のプレフィックスはクエリに含めない"""
        http_session.request.return_value = http_response(
            200, {}, b'<ListBucketResult><Name>bucket</Name></ListBucketResult>'
        )

        obs_client.list_objects('bucket', prefix='', delimiter='/')

        _, url, _, _ = _sent(http_session)
        assert url == 'https://bucket.obs.cn-north-4.myhuaweicloud.com/?delimiter=%2F'

    def test_last_page(self, obs_client, http_session, http_response):
        """正常系: 最終ページの next_marker は None"""
        http_session.request.return_value = http_response(200, {}, (
            '<ListBucketResult><Name>bucket</Name><IsTruncated>false</IsTruncated>'
            '<NextMarker>ignored</NextMarker></ListBucketResult>'
        ).encode('utf-8'))

        listing = obs_client.list_objects('bucket', marker='m', max_keys=10)

        _, url, _, _ = _sent(http_session)
        assert url.endswith('/?marker=m&max-keys=10')
        assert listing.next_marker is None
        assert listing.objects == []

    @pytest.mark.parametrize('body', [b'', b'not xml'])
    def test_invalid_xml(self, obs_client, http_session, http_response, body):
        """異常系: XMLでない応答は ObsParseError"""
        http_session.request.return_value = http_response(200, {}, body)

        with pytest.raises(ObsParseError):
            obs_client.list_objects('bucket')


class TestDeleteObjects:
    """delete_objects のテスト"""

    def test_request_body(self, obs_client, http_session, http_response):
        """正常系: XMLボディと Content-MD5"""
        http_session.request.return_value = http_response(200, {}, (
            '<DeleteResult><Deleted><Key>a&amp;b.txt</Key></Deleted>'
            '<Error><Key>c.txt</Key><Code>AccessDenied</Code><Message>denied</Message></Error>'
            '</DeleteResult>'
        ).encode('utf-8'))

        result = obs_client.delete_objects('bucket', ['a&b.txt', {'Key': 'c.txt', 'VersionId': 'v1'}])

        method, url, headers, body = _sent(http_session)
        assert method == 'POST'
        assert url.endswith('/?delete')
        assert b'<Key>a&amp;b.txt</Key>' in body
        assert b'<VersionId>v1</VersionId>' in body
        assert headers['Content-MD5'] == base64.b64encode(hashlib.md5(body).digest()).decode('ascii')
        assert result.deleted == ['a&b.txt']
        assert result.errors[0].key == 'c.txt'
        assert result.errors[0].code == 'AccessDenied'

    def test_empty_response(self, obs_client):
        """正常系: 応答ボディが空なら結果も空"""
        result = obs_client.delete_objects('bucket', ['a.txt'])

        assert result.deleted == []
        assert result.errors == []

    def test_too_many_objects(self, obs_client, http_session):
        """異常系: 上限を超える件数"""
        with pytest.raises(ValueError):
            obs_client.delete_objects('bucket', ['k'] * (MAX_DELETE_OBJECTS + 1))

        http_session.request.assert_not_called()


class TestMultipart:
    """マルチパートアップロードのテスト"""

    def test_initiate(self, obs_client, http_session, http_response):
        """正常系: UploadId を取得"""
        http_session.request.return_value = http_response(200, {}, (
            '<InitiateMultipartUploadResult><Bucket>bucket</Bucket><Key>big.bin</Key>'
            '<UploadId>upload-1</UploadId></InitiateMultipartUploadResult>'
        ).encode('utf-8'))

        upload = obs_client.initiate_multipart_upload('bucket', 'big.bin')

        _, url, _, _ = _sent(http_session)
        assert url.endswith('/big.bin?uploads')
        assert upload.upload_id == 'upload-1'
        assert upload.key == 'big.bin'

    def test_initiate_without_upload_id(self, obs_client, http_session, http_response):
        """異常系: UploadId がない応答"""
        http_session.request.return_value = http_response(
            200, {}, b'<InitiateMultipartUploadResult></InitiateMultipartUploadResult>'
        )

        with pytest.raises(ObsParseError):
            obs_client.initiate_multipart_upload('bucket', 'big.bin')

    def test_upload_part(self, obs_client, http_session, http_response):
        """正常系: ETag を返す"""
        http_session.request.return_value = http_response(200, {'ETag': '"part-etag"'})

        part = obs_client.upload_part('bucket', 'big.bin', 'upload-1', 2, b'data')

        _, url, _, body = _sent(http_session)
        assert url.endswith('/big.bin?partNumber=2&uploadId=upload-1')
        assert body == b'data'
        assert part == UploadedPart(part_number=2, etag='"part-etag"')

    def test_complete(self, obs_client, http_session):
        """正常系: 段の一覧をXMLで送信"""
        obs_client.complete_multipart_upload(
            'bucket', 'big.bin', 'upload-1', [UploadedPart(1, '"e1"'), UploadedPart(2, '"e2"')]
        )

        method, url, _, body = _sent(http_session)
        assert method == 'POST'
        assert url.endswith('/big.bin?uploadId=upload-1')
        assert b'<Part><PartNumber>1</PartNumber><ETag>&quot;e1&quot;</ETag></Part>' in body
        assert b'<PartNumber>2</PartNumber>' in body

    def test_abort(self, obs_client, http_session):
        """正常系: DELETE で中止"""
        obs_client.abort_multipart_upload('bucket', 'big.bin', 'upload-1')

        method, url, _, _ = _sent(http_session)
        assert method == 'DELETE'
        assert url.endswith('/big.bin?uploadId=upload-1')


class TestBucketOperations:
    """バケット操作のテスト"""

    def test_list_buckets(self, obs_client, http_session, http_response):
        """正常系: バケット一覧を解析"""
        http_session.request.return_value = http_response(200, {}, (
            f'<ListAllMyBucketsResult {NS}><Owner><ID>o</ID></Owner><Buckets>'
            '<Bucket><Name>first</Name><CreationDate>2018-01-01T00:00:00.000Z</CreationDate></Bucket>'
            '<Bucket><Name>second</Name><CreationDate>2019-01-01T00:00:00.000Z</CreationDate></Bucket>'
            '</Buckets></ListAllMyBucketsResult>'
        ).encode('utf-8'))

        buckets = obs_client.list_buckets()

        _, url, headers, _ = _sent(http_session)
        assert url == 'https://obs.cn-north-4.myhuaweicloud.com/'
        assert headers['Host'] == 'obs.cn-north-4.myhuaweicloud.com'
        assert [b.name for b in buckets] == ['first', 'second']
        assert buckets[1].creation_date.year == 2019

    def test_create_bucket(self, obs_client, http_session):
        """正常系: ロケーション・ストレージクラス・ACL を指定"""
        obs_client.create_bucket('new-bucket', location='cn-north-4', storage_class='WARM', acl='private')

        method, url, headers, body = _sent(http_session)
        assert method == 'PUT'
        assert url == 'https://new-bucket.obs.cn-north-4.myhuaweicloud.com/'
        assert b'<Location>cn-north-4</Location>' in body
        assert headers['Content-Type'] == 'application/xml'
        assert headers['x-obs-storage-class'] == 'WARM'
        assert headers['x-obs-acl'] == 'private'

    def test_delete_bucket(self, obs_client, http_session):
        """正常系: DELETE を送信"""
        obs_client.delete_bucket('old-bucket')

        method, url, _, _ = _sent(http_session)
        assert method == 'DELETE'
        assert url == 'https://old-bucket.obs.cn-north-4.myhuaweicloud.com/'

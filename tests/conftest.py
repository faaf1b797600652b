"""共通フィクスチャ"""

import pytest
from unittest.mock import MagicMock

from obs_storage.config import ObsConfig
from obs_storage.obs.client import ObsClient


def make_http_response(status_code=200, headers=None, content=b''):
    """requests.Response の代わりになるモック"""
    response = MagicMock()
    response.status_code = status_code
    response.headers = dict(headers or {})
    response.content = content
    return response


@pytest.fixture
def obs_config():
    """テスト用OBS設定"""
    return ObsConfig(
        access_key_id='testAccessKey',
        secret_access_key='testSecretKey',
        bucket_name='bucket',
        region='cn-north-4',
    )


@pytest.fixture
def http_session():
    """送信内容を記録する requests.Session のモック"""
    session = MagicMock()
    session.request.return_value = make_http_response()
    return session


@pytest.fixture
def obs_client(obs_config, http_session):
    """モックセッションを使うOBSクライアント"""
    return ObsClient.from_config(obs_config, session=http_session)


@pytest.fixture
def http_response():
    """HTTPレスポンスモックのファクトリ"""
    return make_http_response

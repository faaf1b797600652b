"""PathPrefixer・PublicUrlGenerator のユニットテスト"""

import pytest

from obs_storage.config import ObsConfig
from obs_storage.prefixer import PathPrefixer
from obs_storage.url import PublicUrlGenerator


class TestPathPrefixer:
    """PathPrefixer のテスト"""

    @pytest.mark.parametrize('prefix,path,expected', [
        ('', 'a/b.txt', 'a/b.txt'),
        ('', '/a/b.txt', 'a/b.txt'),
        ('uploads', 'a/b.txt', 'uploads/a/b.txt'),
        ('uploads/', '/a/b.txt', 'uploads/a/b.txt'),
    ])
    def test_prefix_path(self, prefix, path, expected):
        """正常系: プレフィックスの付与"""
        assert PathPrefixer(prefix).prefix_path(path) == expected

    @pytest.mark.parametrize('prefix,path,expected', [
        ('', '', ''),
        ('', 'a', 'a/'),
        ('', 'a/', 'a/'),
        ('uploads', '', 'uploads/'),
        ('uploads', 'a/b', 'uploads/a/b/'),
    ])
    def test_prefix_directory_path(self, prefix, path, expected):
        """正常系: ディレクトリは "/" で終わる"""
        assert PathPrefixer(prefix).prefix_directory_path(path) == expected

    def test_strip_prefix(self):
        """正常系: プレフィックスの除去"""
        prefixer = PathPrefixer('uploads')

        assert prefixer.strip_prefix('uploads/a/b.txt') == 'a/b.txt'
        assert prefixer.strip_prefix('other/a.txt') == 'other/a.txt'
        assert prefixer.strip_directory_prefix('uploads/a/b/') == 'a/b'


class TestPublicUrlGenerator:
    """PublicUrlGenerator のテスト"""

    def test_obs_format(self):
        """正常系: バケット名をサブドメインにする"""
        generator = PublicUrlGenerator('https://obs.cn-north-4.myhuaweicloud.com/', 'bucket')

        assert generator.public_url('dir/a.txt') == 'https://bucket.obs.cn-north-4.myhuaweicloud.com/dir/a.txt'

    def test_cdn_format_with_prefix(self):
        """正常系: 独自ドメインとプレフィックス"""
        generator = PublicUrlGenerator('cdn.example.com', 'bucket', 'uploads/', use_obs_format=False)

        assert generator.public_url('/写真/a b.jpg') == (
            'https://cdn.example.com/uploads/%E5%86%99%E7%9C%9F/a%20b.jpg'
        )

    def test_from_config(self):
        """正常系: 公開ドメイン優先、なければエンドポイント、どちらもなければ None"""
        cdn = PublicUrlGenerator.from_config(ObsConfig(bucket_name='b', public_domain='cdn.example.com'))
        obs = PublicUrlGenerator.from_config(ObsConfig(bucket_name='b', endpoint='obs.example.com'))

        assert cdn.public_url('a') == 'https://cdn.example.com/a'
        assert obs.public_url('a') == 'https://b.obs.example.com/a'
        assert PublicUrlGenerator.from_config(ObsConfig(bucket_name='b')) is None

"""公開URL生成

OBSオブジェクトの公開アクセスURLを生成する。
- OBS形式:      https://{bucket}.{endpoint}/{path}
- CDN/独自ドメイン: https://{domain}/{path}
"""

import re
from typing import Optional
from urllib.parse import quote

from .config import ObsConfig


class PublicUrlGenerator:
    """公開URL生成器"""

    def __init__(self, base_url: str, bucket: str, prefix: str = '', use_obs_format: bool = True):
        """
        Args:
            base_url: OBSエンドポイント、CDNドメイン、または独自ドメイン
            bucket: バケット名
            prefix: パスプレフィックス
            use_obs_format: Trueの場合バケット名をサブドメインにする
        """
        clean_url = re.sub(r'^https?://', '', base_url).rstrip('/')
        if use_obs_format:
            self.base_url = f"https://{bucket}.{clean_url}"
        else:
            self.base_url = f"https://{clean_url}"
        self.prefix = prefix

    @classmethod
    def from_config(cls, config: ObsConfig) -> Optional['PublicUrlGenerator']:
        """公開ドメイン優先、なければエンドポイントからOBS形式で生成"""
        if config.public_domain:
            return cls(config.public_domain, config.bucket_name, config.prefix, use_obs_format=False)
        if config.endpoint:
            return cls(config.endpoint, config.bucket_name, config.prefix, use_obs_format=True)
        return None

    def public_url(self, path: str) -> str:
        if self.prefix:
            object_path = self.prefix.rstrip('/') + '/' + path.lstrip('/')
        else:
            object_path = path
        # スラッシュは残して各セグメントをエンコード
        encoded = '/'.join(quote(segment, safe='') for segment in object_path.split('/'))
        return f"{self.base_url}/{encoded}"

"""ストレージ設定クラス

環境変数からの設定読み込みを一元管理。
環境変数を読むのは from_env() のみで、モード判定は設定値だけから決まる。
"""

from dataclasses import dataclass, field
from typing import Optional
import os


DEFAULT_OBS_REGION = "cn-north-4"


@dataclass(frozen=True)
class ObsConfig:
    """Huawei OBS固有設定"""
    access_key_id: str = ""
    secret_access_key: str = ""
    bucket_name: str = ""
    prefix: str = ""
    region: str = DEFAULT_OBS_REGION
    endpoint: Optional[str] = None
    security_token: Optional[str] = None
    public_domain: Optional[str] = None
    timeout: float = 30.0
    multipart_threshold: int = 16 * 1024 * 1024
    part_size: int = 8 * 1024 * 1024

    @classmethod
    def from_env(cls) -> 'ObsConfig':
        """環境変数から設定を読み込み"""
        return cls(
            access_key_id=os.getenv('HUAWEI_OBS_ACCESS_KEY', ''),
            secret_access_key=os.getenv('HUAWEI_OBS_SECRET_KEY', ''),
            bucket_name=os.getenv('HUAWEI_OBS_BUCKET', ''),
            prefix=os.getenv('HUAWEI_OBS_PREFIX', ''),
            region=os.getenv('HUAWEI_OBS_REGION') or DEFAULT_OBS_REGION,
            endpoint=os.getenv('HUAWEI_OBS_ENDPOINT') or None,
            security_token=os.getenv('HUAWEI_OBS_SECURITY_TOKEN') or None,
            public_domain=os.getenv('HUAWEI_OBS_PUBLIC_DOMAIN') or None,
        )

    @property
    def resolved_endpoint(self) -> str:
        """エンドポイント（未指定時はリージョンから組み立て）"""
        if self.endpoint:
            return self.endpoint
        return f"obs.{self.region}.myhuaweicloud.com"

    def is_complete(self) -> bool:
        """認証情報とバケット名が揃っているか"""
        return bool(self.access_key_id and self.secret_access_key and self.bucket_name)


@dataclass(frozen=True)
class S3Config:
    """S3固有設定"""
    bucket_name: str = "obs-storage-dev"
    endpoint_url: Optional[str] = None
    region: str = "ap-northeast-1"
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    prefix: str = ""

    @classmethod
    def from_env(cls) -> 'S3Config':
        """環境変数から設定を読み込み"""
        return cls(
            bucket_name=os.getenv('S3_BUCKET_NAME', 'obs-storage-dev'),
            endpoint_url=os.getenv('S3_ENDPOINT_URL'),
            region=os.getenv('AWS_DEFAULT_REGION', 'ap-northeast-1'),
            access_key_id=os.getenv('AWS_ACCESS_KEY_ID'),
            secret_access_key=os.getenv('AWS_SECRET_ACCESS_KEY'),
            prefix=os.getenv('S3_PREFIX', ''),
        )


@dataclass(frozen=True)
class LocalConfig:
    """ローカルストレージ固有設定"""
    base_path: str = "/data/storage"

    @classmethod
    def from_env(cls) -> 'LocalConfig':
        """環境変数から設定を読み込み"""
        return cls(
            base_path=os.getenv('LOCAL_STORAGE_PATH', '/data/storage')
        )


@dataclass(frozen=True)
class StorageConfig:
    """
    統合ストレージ設定

    mode=None の場合はOBS設定が揃っていれば 'obs'、そうでなければ 'local'。
    """
    mode: Optional[str] = None
    obs: ObsConfig = field(default_factory=ObsConfig)
    s3: S3Config = field(default_factory=S3Config)
    local: LocalConfig = field(default_factory=LocalConfig)

    @classmethod
    def from_env(cls) -> 'StorageConfig':
        """環境変数から設定を読み込み"""
        mode = os.getenv('STORAGE_MODE', '').strip().lower() or None
        return cls(
            mode=mode,
            obs=ObsConfig.from_env(),
            s3=S3Config.from_env(),
            local=LocalConfig.from_env()
        )

    def resolve_mode(self) -> str:
        """使用するストレージモードを決定"""
        if self.mode:
            return self.mode.lower()
        if self.obs.is_complete():
            return 'obs'
        return 'local'

    def get_backend_config(self):
        """現在のモードに対応するバックエンド設定を取得"""
        mode = self.resolve_mode()
        if mode == 'obs':
            return self.obs
        elif mode == 's3':
            return self.s3
        elif mode == 'local':
            return self.local
        return None

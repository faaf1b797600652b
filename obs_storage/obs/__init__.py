"""Huawei OBSクライアント（署名・HTTP通信・XML解析）"""

from .client import ObsClient, MAX_DELETE_OBJECTS
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
)
from .signature import ObsSignature, SigningContext, SUB_RESOURCES, build_resource, sign

__all__ = [
    'ObsClient',
    'MAX_DELETE_OBJECTS',
    'ObsResponse',
    'ObjectMetadata',
    'ObjectSummary',
    'ObjectListing',
    'BucketInfo',
    'MultipartUpload',
    'UploadedPart',
    'DeleteError',
    'DeleteResult',
    'ObsSignature',
    'SigningContext',
    'SUB_RESOURCES',
    'build_resource',
    'sign',
]

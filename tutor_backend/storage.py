# tutor_backend/storage.py
"""R2 (S3 호환) 오브젝트 스토리지"""

import threading
import logging

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError
from flask import current_app

logger = logging.getLogger(__name__)

NOT_FOUND_CODES = ('404', 'NoSuchKey', 'NotFound')


class StorageNotConfigured(RuntimeError):
    pass


class ObjectNotFound(Exception):
    def __init__(self, key):
        super().__init__(key)
        self.key = key


def is_not_found(error):
    if not isinstance(error, ClientError):
        return False
    code = str(error.response.get('Error', {}).get('Code', ''))
    status = error.response.get('ResponseMetadata', {}).get('HTTPStatusCode')
    return code in NOT_FOUND_CODES or status == 404


class ObjectStorage:
    """버킷 하나에 대한 S3 클라이언트 래퍼 (클라이언트는 지연 생성 후 공유)"""

    def __init__(self, settings, client=None):
        self.settings = settings
        self.bucket = settings.r2_bucket_name
        self._client = client
        self._lock = threading.Lock()

    @property
    def client(self):
        if self._client is None:
            with self._lock:
                if self._client is None:
                    self._client = self._create_client()
        return self._client

    def _create_client(self):
        if not self.settings.storage_configured:
            raise StorageNotConfigured('R2 configuration is missing')
        return boto3.client(
            's3',
            aws_access_key_id=self.settings.r2_access_key_id,
            aws_secret_access_key=self.settings.r2_secret_access_key,
            region_name='auto',
            endpoint_url=self.settings.storage_endpoint,
            config=Config(signature_version='s3v4', s3={'addressing_style': 'path'})
        )

    def head_object(self, key):
        """객체 메타데이터 (크기, 타입) 조회"""
        try:
            return self.client.head_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            if is_not_found(e):
                raise ObjectNotFound(key) from e
            raise

    def get_object(self, key, start=None, end=None):
        """객체 조회 (start/end 가 있으면 해당 바이트 범위만)"""
        params = {'Bucket': self.bucket, 'Key': key}
        if start is not None:
            params['Range'] = f'bytes={start}-{end}'
        try:
            return self.client.get_object(**params)
        except ClientError as e:
            if is_not_found(e):
                raise ObjectNotFound(key) from e
            raise

    def put_file(self, file_path, key, content_type):
        """로컬 파일을 한 번의 PutObject 로 업로드"""
        with open(file_path, 'rb') as body:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=body,
                ContentType=content_type
            )

    def generate_presigned_put_url(self, key, expires_in=3600):
        return self.client.generate_presigned_url(
            ClientMethod='put_object',
            Params={'Bucket': self.bucket, 'Key': key},
            ExpiresIn=expires_in
        )

    def generate_presigned_get_url(self, key, expires_in=14400):
        return self.client.generate_presigned_url(
            ClientMethod='get_object',
            Params={'Bucket': self.bucket, 'Key': key},
            ExpiresIn=expires_in
        )

    def ping(self):
        self.client.head_bucket(Bucket=self.bucket)


def get_storage():
    return current_app.extensions['tutor_storage']

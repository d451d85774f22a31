# tutor_backend/config.py

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from dotenv import dotenv_values
from flask import current_app

# 기본 환경 설정 파일 (프로젝트 루트의 env.config)
DEFAULT_ENV_FILE = Path(__file__).resolve().parent.parent / 'env.config'

JWT_ALGORITHM = 'HS256'
JWT_EXPIRES_HOURS = 6

# 업로드 설정
MAX_UPLOAD_BYTES = 5 * 1024 * 1024 * 1024  # 5GB
MAX_SESSION_VIDEOS = 10
ALLOWED_VIDEO_CONTENT_TYPES = (
    'video/mp4',
    'video/webm',
    'video/ogg',
    'video/quicktime',
    'video/x-msvideo',
    'video/x-matroska',
)

DISPLAY_TIMEZONE = 'Africa/Cairo'


def is_enabled(value):
    """'true' / '1' 플래그 판별"""
    return str(value or '').strip().lower() in ('true', '1')


@dataclass(frozen=True)
class Settings:
    """앱 시작 시 한 번 만들어지는 불변 설정 객체"""
    jwt_secret: str = 'change-me'
    jwt_algorithm: str = JWT_ALGORITHM
    jwt_expires_hours: int = JWT_EXPIRES_HOURS
    cookie_secure: bool = False
    flask_secret_key: str = 'change-me'

    subscription_enabled: bool = False
    device_limitations_enabled: bool = False
    subscription_check_minutes: int = 30

    firebase_credentials: Optional[str] = None
    firebase_project_id: Optional[str] = None

    cloudflare_account_id: Optional[str] = None
    r2_access_key_id: Optional[str] = None
    r2_secret_access_key: Optional[str] = None
    r2_bucket_name: Optional[str] = None
    r2_endpoint_url: Optional[str] = None

    max_upload_bytes: int = MAX_UPLOAD_BYTES
    max_session_videos: int = MAX_SESSION_VIDEOS
    allowed_video_content_types: tuple = field(default=ALLOWED_VIDEO_CONTENT_TYPES)
    display_timezone: str = DISPLAY_TIMEZONE

    @property
    def session_max_age(self):
        return self.jwt_expires_hours * 60 * 60

    @property
    def storage_endpoint(self):
        if self.r2_endpoint_url:
            return self.r2_endpoint_url
        if self.cloudflare_account_id:
            return f'https://{self.cloudflare_account_id}.r2.cloudflarestorage.com'
        return None

    @property
    def storage_configured(self):
        return all([
            self.storage_endpoint,
            self.r2_access_key_id,
            self.r2_secret_access_key,
            self.r2_bucket_name,
        ])


def _int(values, key, default):
    raw = values.get(key)
    if raw in (None, ''):
        return default
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ValueError(f"{key} 값이 정수가 아닙니다: {raw!r}")


def load_settings(env_file=None, environ: Optional[Mapping[str, str]] = None) -> Settings:
    """env.config 파일과 프로세스 환경변수를 합쳐 Settings 생성

    env.config 에 있는 값이 환경변수보다 우선합니다.
    """
    values = dict(os.environ if environ is None else environ)

    path = Path(env_file) if env_file else DEFAULT_ENV_FILE
    if path.exists():
        file_values = {k: v for k, v in dotenv_values(path).items() if v is not None}
        values.update(file_values)

    return Settings(
        jwt_secret=values.get('JWT_SECRET', 'change-me'),
        cookie_secure=is_enabled(values.get('COOKIE_SECURE')),
        flask_secret_key=values.get('FLASK_SECRET_KEY', 'change-me'),
        subscription_enabled=is_enabled(values.get('SYSTEM_SUBSCRIPTION')),
        device_limitations_enabled=is_enabled(values.get('SYSTEM_DEVICE_LIMITATIONS')),
        subscription_check_minutes=_int(values, 'SUBSCRIPTION_CHECK_MINUTES', 30),
        firebase_credentials=values.get('FIREBASE_CREDENTIALS') or None,
        firebase_project_id=values.get('FIREBASE_PROJECT_ID') or None,
        cloudflare_account_id=values.get('CLOUDFLARE_ACCOUNT_ID') or None,
        r2_access_key_id=values.get('R2_ACCESS_KEY_ID') or None,
        r2_secret_access_key=values.get('R2_SECRET_ACCESS_KEY') or None,
        r2_bucket_name=values.get('R2_BUCKET_NAME') or None,
        r2_endpoint_url=values.get('R2_ENDPOINT_URL') or None,
        max_upload_bytes=_int(values, 'MAX_UPLOAD_BYTES', MAX_UPLOAD_BYTES),
        max_session_videos=_int(values, 'MAX_SESSION_VIDEOS', MAX_SESSION_VIDEOS),
        display_timezone=values.get('DISPLAY_TIMEZONE', DISPLAY_TIMEZONE),
    )


def get_settings() -> Settings:
    return current_app.config['SETTINGS']

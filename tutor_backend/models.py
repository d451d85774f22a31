# tutor_backend/models.py
"""Firestore 문서 모델

각 모델은 ``to_dict()`` 로 Firestore 에 저장할 dict 를 만들고
``from_dict(data)`` 로 저장된 문서를 읽어옵니다. 누락된 필드는
기본값으로 채웁니다.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from .utils import format_datetime, normalize_account_id

ROLES = ('student', 'assistant', 'admin', 'developer')
ACTIVATED = 'Activated'
DEACTIVATED = 'Deactivated'

DEFAULT_ALLOWED_DEVICES = 1
UNKNOWN_DEVICE_ID = 'unknown-device'


def _display_time(value, tz_name):
    # 과거 문서에는 datetime 으로 저장된 값이 섞여 있음
    if isinstance(value, datetime):
        return format_datetime(value, tz_name)
    return value or None


@dataclass
class Device:
    device_id: str = UNKNOWN_DEVICE_ID
    ip: str = 'unknown'
    browser: str = 'Unknown'
    os: str = 'Unknown'
    device_type: str = 'desktop'
    first_login: Optional[str] = None
    last_login: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'device_id': self.device_id,
            'ip': self.ip,
            'browser': self.browser,
            'os': self.os,
            'device_type': self.device_type,
            'first_login': self.first_login,
            'last_login': self.last_login,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], tz_name: str = 'Africa/Cairo') -> Device:
        data = data or {}
        return cls(
            device_id=data.get('device_id') or UNKNOWN_DEVICE_ID,
            ip=data.get('ip') or 'unknown',
            browser=data.get('browser') or 'Unknown',
            os=data.get('os') or 'Unknown',
            device_type=data.get('device_type') or 'desktop',
            first_login=_display_time(data.get('first_login'), tz_name),
            last_login=_display_time(data.get('last_login'), tz_name),
        )


@dataclass
class DeviceLimitations:
    allowed_devices: int = DEFAULT_ALLOWED_DEVICES
    devices: List[Device] = field(default_factory=list)
    last_login: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'allowed_devices': self.allowed_devices,
            'devices': [d.to_dict() for d in self.devices],
            'last_login': self.last_login,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]], tz_name: str = 'Africa/Cairo') -> DeviceLimitations:
        data = data or {}
        allowed = data.get('allowed_devices')
        if isinstance(allowed, bool) or not isinstance(allowed, int):
            allowed = DEFAULT_ALLOWED_DEVICES
        raw_devices = data.get('devices')
        devices = [
            Device.from_dict(d, tz_name)
            for d in (raw_devices if isinstance(raw_devices, list) else [])
            if isinstance(d, dict)
        ]
        return cls(
            allowed_devices=allowed,
            devices=devices,
            last_login=_display_time(data.get('last_login'), tz_name),
        )


@dataclass
class User:
    id: str
    name: str = ''
    phone: str = ''
    password: str = ''
    role: str = 'student'
    account_state: str = DEACTIVATED
    device_limitations: DeviceLimitations = field(default_factory=DeviceLimitations)

    @property
    def is_student(self) -> bool:
        return self.role == 'student'

    @classmethod
    def from_dict(cls, data: Dict[str, Any], doc_id: Optional[str] = None) -> User:
        return cls(
            id=normalize_account_id(data.get('id')) or doc_id,
            name=data.get('name') or '',
            phone=str(data.get('phone') or ''),
            password=data.get('password') or '',
            role=data.get('role') or 'student',
            account_state=data.get('account_state') or DEACTIVATED,
            device_limitations=DeviceLimitations.from_dict(data.get('device_limitations')),
        )


@dataclass
class VideoRef:
    video_type: str
    video_id: str
    video_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'video_type': self.video_type,
            'video_id': self.video_id,
            'video_name': self.video_name,
        }


@dataclass
class LessonSession:
    name: str
    grade: str
    week: int
    payment_state: str
    videos: List[VideoRef] = field(default_factory=list)
    description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'grade': self.grade,
            'week': self.week,
            'payment_state': self.payment_state,
            'description': self.description,
            'videos': [v.to_dict() for v in self.videos],
        }

# tutor_backend/devices.py
"""기기 제한 (device limitations)

로그인 시 기기 등록 규칙과 관리자용 기기 목록 / 한도 변경 / 기기 삭제.
허용 기기 수는 새 기기를 등록할 때만 검사합니다. 한도를 낮춰도
이미 등록된 기기는 지워지지 않습니다.
"""

import math
import logging
from dataclasses import dataclass, replace

from user_agents import parse as parse_ua

from .errors import DeviceLimitReached, ValidationError
from .models import Device, DeviceLimitations, UNKNOWN_DEVICE_ID
from .utils import account_sort_key, normalize_account_id, parse_positive_int

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50
DEVICE_EXEMPT_ROLES = ('developer',)
DEVICE_ADMIN_ROLES = ('admin', 'developer', 'assistant')


@dataclass(frozen=True)
class DeviceFamily:
    """기기 관리 화면 단위 (학생 / 조교)"""
    name: str
    roles: tuple
    uses_student_profile: bool


STUDENTS = DeviceFamily('students', ('student',), True)
ASSISTANTS = DeviceFamily('assistants', ('assistant', 'admin'), False)


# ==== 로그인 시 기기 식별 ====

def resolve_device_id(raw):
    if isinstance(raw, str) and raw.strip():
        return raw.strip()
    return UNKNOWN_DEVICE_ID


def resolve_client_ip(forwarded_for, remote_addr):
    """X-Forwarded-For 첫 번째 값 -> 소켓 주소 -> 'unknown'"""
    if forwarded_for:
        first = forwarded_for.split(',')[0].strip()
        if first:
            return first
    return remote_addr or 'unknown'


def parse_user_agent(user_agent):
    """User-Agent 에서 (브라우저, OS, 기기 종류) 추출"""
    browser, os_name, device_type = 'Unknown', 'Unknown', 'desktop'
    if not user_agent:
        return browser, os_name, device_type

    ua = parse_ua(user_agent)
    if ua.browser.family and ua.browser.family != 'Other':
        browser = ua.browser.family
    if ua.os.family and ua.os.family != 'Other':
        os_name = ua.os.family
    if ua.is_tablet:
        device_type = 'tablet'
    elif ua.is_mobile:
        device_type = 'mobile'
    return browser, os_name, device_type


def build_device(device_id, ip, user_agent, now_text):
    browser, os_name, device_type = parse_user_agent(user_agent)
    return Device(
        device_id=resolve_device_id(device_id),
        ip=ip or 'unknown',
        browser=browser,
        os=os_name,
        device_type=device_type,
        first_login=now_text,
        last_login=now_text,
    )


def apply_login(limitations: DeviceLimitations, incoming: Device, now_text) -> DeviceLimitations:
    """로그인한 기기를 반영한 새 DeviceLimitations 반환

    이미 등록된 기기면 last_login 만 갱신하고, 새 기기는 한도 안에서만
    추가합니다. 한도에 도달했으면 DeviceLimitReached.
    """
    devices = list(limitations.devices)
    index = next(
        (i for i, d in enumerate(devices) if d.device_id == incoming.device_id),
        None
    )

    if index is None:
        if len(devices) >= limitations.allowed_devices:
            raise DeviceLimitReached()
        devices.append(replace(incoming, first_login=now_text, last_login=now_text))
    else:
        existing = devices[index]
        devices[index] = replace(
            existing,
            ip=existing.ip if existing.ip != 'unknown' else incoming.ip,
            browser=existing.browser if existing.browser != 'Unknown' else incoming.browser,
            os=existing.os if existing.os != 'Unknown' else incoming.os,
            last_login=now_text,
        )

    return DeviceLimitations(
        allowed_devices=limitations.allowed_devices,
        devices=devices,
        last_login=now_text,
    )


def without_device(limitations: DeviceLimitations, device_id) -> DeviceLimitations:
    return replace(
        limitations,
        devices=[d for d in limitations.devices if d.device_id != device_id]
    )


# ==== 관리자 API ====

def ensure_enabled(settings):
    if not settings.device_limitations_enabled:
        raise ValidationError('device_limitations_disabled')


def _matches_search(family, user, profile, term):
    if term.isdigit():
        if len(term) <= 4:
            return str(user.get('id')) == str(int(term))
        phone = (profile or user).get('phone') or ''
        return term in str(phone)

    needle = term.lower()
    if family.uses_student_profile:
        return needle in str((profile or {}).get('name') or '').lower()
    return (
        needle in str(user.get('id') or '').lower()
        or needle in str(user.get('name') or '').lower()
    )


def _device_row(family, user, profile, tz_name):
    limitations = DeviceLimitations.from_dict(user.get('device_limitations'), tz_name)
    source = profile if family.uses_student_profile else user
    source = source or {}
    row = {
        'id': user.get('id'),
        'name': source.get('name') or 'Unknown',
        'phone': str(source.get('phone') or ''),
        'allowed_devices': limitations.allowed_devices,
        'last_login': limitations.last_login,
        'devices': [d.to_dict() for d in limitations.devices],
    }
    if not family.uses_student_profile:
        row['username'] = user.get('id') or ''
        row['role'] = user.get('role') or 'assistant'
    return row


def build_pagination(current_page, page_size, total_count):
    total_pages = math.ceil(total_count / page_size) if page_size else 0
    has_next = current_page < total_pages
    has_prev = current_page > 1
    return {
        'currentPage': current_page,
        'totalPages': total_pages,
        'totalCount': total_count,
        'limit': page_size,
        'hasNextPage': has_next,
        'hasPrevPage': has_prev,
        'nextPage': current_page + 1 if has_next else None,
        'prevPage': current_page - 1 if has_prev else None,
    }


def list_devices(store, settings, family, page=None, limit=None, search=None):
    """역할 그룹별 기기 목록 (검색 + 페이지네이션)"""
    current_page = parse_positive_int(page, 1)
    page_size = parse_positive_int(limit, DEFAULT_PAGE_SIZE)
    term = (search or '').strip()

    users = store.list_users(family.roles)
    profiles = {}
    if family.uses_student_profile:
        profiles = {str(p.get('id')): p for p in store.list_students()}

    if term:
        users = [
            u for u in users
            if _matches_search(family, u, profiles.get(str(u.get('id'))), term)
        ]

    users.sort(key=lambda u: account_sort_key(u.get('id')))
    start = (current_page - 1) * page_size
    page_users = users[start:start + page_size]

    data = [
        _device_row(family, u, profiles.get(str(u.get('id'))), settings.display_timezone)
        for u in page_users
    ]
    return {
        'data': data,
        'pagination': build_pagination(current_page, page_size, len(users)),
    }


def update_allowed_devices(store, family, raw_id, raw_allowed):
    """허용 기기 수 변경 (기존 기기는 그대로 유지)"""
    account_id = normalize_account_id(raw_id)
    if not account_id:
        raise ValidationError('invalid_id')

    try:
        allowed = int(raw_allowed)
    except (TypeError, ValueError):
        raise ValidationError('invalid_allowed_devices')
    if isinstance(raw_allowed, bool) or allowed <= 0:
        raise ValidationError('invalid_allowed_devices')

    updated = store.set_allowed_devices(account_id, family.roles, allowed)
    if not updated:
        logger.warning(f"허용 기기 수 변경 대상 없음: {family.name}/{account_id}")
    else:
        logger.info(f"허용 기기 수 변경: {account_id} -> {allowed}")
    return updated


def delete_device(store, family, raw_id, device_id):
    """등록 기기 삭제 (없는 기기 ID 면 아무 것도 하지 않음)"""
    account_id = normalize_account_id(raw_id)
    if not account_id or not device_id:
        raise ValidationError('invalid_parameters')

    removed = store.remove_device(account_id, family.roles, device_id)
    if removed:
        logger.info(f"기기 삭제: {account_id} / {device_id}")
    return removed

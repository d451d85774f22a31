# tutor_backend/utils.py

import re
from datetime import datetime, timezone
from zoneinfo import ZoneInfo
import logging

logger = logging.getLogger(__name__)

YOUTUBE_URL_RE = re.compile(
    r'(?:youtu\.be/|youtube\.com/(?:watch\?v=|embed/))([a-zA-Z0-9_-]{11})'
)
YOUTUBE_ID_RE = re.compile(r'^[a-zA-Z0-9_-]{11}$')
WEEK_RE = re.compile(r'week\s*(\d+)', re.IGNORECASE)


def utcnow():
    return datetime.now(timezone.utc)


def normalize_account_id(raw):
    """계정 ID 를 문자열 하나로 통일 (숫자 / 문자열 입력 모두 허용)"""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return str(raw)
    if not isinstance(raw, str):
        return None
    value = raw.replace('$', '').strip()
    if not value:
        return None
    if value.isdigit():
        return str(int(value))
    return value


def account_sort_key(account_id):
    value = str(account_id)
    if value.isdigit():
        return (0, int(value), value)
    return (1, 0, value)


def format_datetime(value, tz_name='Africa/Cairo'):
    """'DD/MM/YYYY at HH:MM AM' 형식 (표시용 타임존 기준)"""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    local = value.astimezone(ZoneInfo(tz_name))
    return local.strftime('%d/%m/%Y at %I:%M %p')


def parse_datetime(value):
    """datetime / ISO 문자열 / Firestore 타임스탬프를 aware datetime 으로 변환"""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
        except ValueError:
            logger.warning(f"날짜 파싱 실패: {value!r}")
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def extract_youtube_id(url):
    """유튜브 URL (또는 11자리 ID) 에서 영상 ID 추출"""
    if not url:
        return None
    value = url.strip()
    match = YOUTUBE_URL_RE.search(value)
    if match:
        return match.group(1)
    if YOUTUBE_ID_RE.match(value):
        return value
    return None


def extract_week_number(value):
    """'week 01' / 1 / '1' -> 1"""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    text = str(value).strip()
    if text.isdigit():
        number = int(text)
    else:
        match = WEEK_RE.search(text)
        if not match:
            return None
        number = int(match.group(1))
    return number if number > 0 else None


def week_number_to_string(number):
    if number is None:
        return ''
    return f"week {number:02d}"


def parse_positive_int(value, default):
    """쿼리 파라미터용 정수 파싱 (잘못된 값이면 기본값)"""
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


def json_object(payload):
    """요청 본문이 JSON 객체가 아니면 빈 dict 로 취급 (배열 / 스칼라 포함)"""
    return payload if isinstance(payload, dict) else {}

# tutor_backend/lessons.py
"""수업 영상 세션 (학년 + 주차 단위) 관리"""

import logging

from .errors import ConflictError, NotFoundError, ValidationError
from .models import LessonSession, VideoRef
from .utils import extract_week_number, extract_youtube_id, json_object, week_number_to_string

logger = logging.getLogger(__name__)

PAYMENT_STATES = ('paid', 'free', 'free_if_attended')
VIDEO_TYPE_YOUTUBE = 'youtube'
VIDEO_TYPE_R2 = 'r2'
EMPTY_ROW_MESSAGE = 'Video URL or upload is required'


def _text(value):
    return value.strip() if isinstance(value, str) else ''


def _parse_video_row(row):
    """폼 한 줄 -> (VideoRef | None, 에러 메시지 | None)

    r2_key / youtube_url 형식과 video_type / video_id 형식을 모두 받습니다.
    """
    if not isinstance(row, dict):
        return None, EMPTY_ROW_MESSAGE

    name = _text(row.get('video_name')) or None
    video_type = _text(row.get('video_type'))

    if video_type == VIDEO_TYPE_R2:
        key = _text(row.get('video_id'))
        return (VideoRef(VIDEO_TYPE_R2, key, name), None) if key else (None, EMPTY_ROW_MESSAGE)
    if video_type == VIDEO_TYPE_YOUTUBE:
        raw = _text(row.get('video_id'))
    else:
        r2_key = _text(row.get('r2_key'))
        if r2_key:
            return VideoRef(VIDEO_TYPE_R2, r2_key, name), None
        raw = _text(row.get('youtube_url'))

    if not raw:
        return None, EMPTY_ROW_MESSAGE
    video_id = extract_youtube_id(raw)
    if not video_id:
        return None, 'Invalid YouTube URL'
    return VideoRef(VIDEO_TYPE_YOUTUBE, video_id, name), None


def validate_session_payload(data, max_videos):
    """세션 입력 검증 -> LessonSession

    문제가 있으면 필드별 메시지를 담은 ValidationError.
    """
    data = json_object(data)
    errors = {}

    name = _text(data.get('name'))
    if not name:
        errors['name'] = 'Name is required'

    grade = _text(data.get('grade'))
    if not grade:
        errors['grade'] = 'Grade is required'

    raw_week = data.get('week')
    week = None
    if raw_week in (None, ''):
        errors['week'] = 'Attendance week is required'
    else:
        week = extract_week_number(raw_week)
        if not week:
            errors['week'] = 'Invalid week selection'

    payment_state = _text(data.get('payment_state'))
    if payment_state not in PAYMENT_STATES:
        errors['payment_state'] = 'Video Payment State is required'

    rows = data.get('videos')
    if not isinstance(rows, list):
        rows = []

    videos = []
    empty_rows = []
    for index, row in enumerate(rows):
        video, message = _parse_video_row(row)
        if message == EMPTY_ROW_MESSAGE:
            empty_rows.append(index)
        elif message:
            errors[f'video_{index}_youtube_url'] = message
        elif video:
            videos.append(video)

    if not videos:
        errors['videos'] = 'At least one valid video is required'
    else:
        # 빈 줄은 다른 줄에 영상이 있을 때만 표시
        for index in empty_rows:
            errors[f'video_{index}_youtube_url'] = EMPTY_ROW_MESSAGE
        if len(rows) > max_videos:
            errors['videos'] = f'A session can have at most {max_videos} videos'

    if errors:
        raise ValidationError('validation_failed', 'Please fix the highlighted fields', errors=errors)

    return LessonSession(
        name=name,
        grade=grade,
        week=week,
        payment_state=payment_state,
        videos=videos,
        description=_text(data.get('description')) or None,
    )


def serialize_session(session_id, data):
    data = data or {}
    result = {
        'id': session_id,
        'name': data.get('name', ''),
        'description': data.get('description'),
        'grade': data.get('grade', ''),
        'week': data.get('week'),
        'week_label': week_number_to_string(data.get('week')),
        'payment_state': data.get('payment_state', 'paid'),
        'videos': data.get('videos') or [],
    }
    for field in ('created_at', 'updated_at'):
        value = data.get(field)
        result[field] = value.isoformat() if hasattr(value, 'isoformat') else value
    return result


def ensure_unique_grade_week(store, grade, week, exclude_id=None):
    """같은 학년 + 주차 세션이 이미 있으면 ConflictError"""
    for session_id, data in store.list_sessions():
        if session_id == exclude_id:
            continue
        if data.get('grade') == grade and data.get('week') == week:
            raise ConflictError(
                'duplicate_session',
                'A session with this grade and week already exists'
            )


def list_sessions(store):
    sessions = [serialize_session(sid, data) for sid, data in store.list_sessions()]
    sessions.sort(key=lambda s: (s['grade'], s['week'] or 0))
    return sessions


def get_session(store, session_id):
    data = store.get_session(session_id)
    if data is None:
        raise NotFoundError('session_not_found')
    return serialize_session(session_id, data)


def create_session(store, settings, payload):
    lesson = validate_session_payload(payload, settings.max_session_videos)
    ensure_unique_grade_week(store, lesson.grade, lesson.week)
    session_id = store.create_session(lesson.to_dict())
    logger.info(f"✅ 세션 생성: {session_id} ({lesson.grade} / week {lesson.week})")
    return get_session(store, session_id)


def update_session(store, settings, session_id, payload):
    if not session_id:
        raise ValidationError('session_id_required')
    if store.get_session(session_id) is None:
        raise NotFoundError('session_not_found')

    lesson = validate_session_payload(payload, settings.max_session_videos)
    ensure_unique_grade_week(store, lesson.grade, lesson.week, exclude_id=session_id)
    store.update_session(session_id, lesson.to_dict())
    logger.info(f"✅ 세션 수정: {session_id}")
    return get_session(store, session_id)


def delete_session(store, session_id):
    if not session_id:
        raise ValidationError('session_id_required')
    if not store.delete_session(session_id):
        raise NotFoundError('session_not_found')
    logger.info(f"🗑️ 세션 삭제: {session_id}")

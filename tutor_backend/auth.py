# tutor_backend/auth.py
import logging
from datetime import timedelta
from functools import wraps

import jwt
from flask import g, request
from passlib.context import CryptContext

from .config import get_settings
from .devices import DEVICE_EXEMPT_ROLES, build_device
from .errors import AuthenticationError, ForbiddenError, ValidationError
from .models import ACTIVATED, DEACTIVATED, User
from .subscription import check_subscription_access
from .utils import format_datetime, json_object, normalize_account_id, utcnow

logger = logging.getLogger(__name__)

SESSION_COOKIE = 'token'
pwd_context = CryptContext(schemes=['bcrypt'], deprecated='auto')


def hash_password(password):
    return pwd_context.hash(password)


def verify_password(password, hashed):
    if not hashed:
        return False
    try:
        return pwd_context.verify(password, hashed)
    except ValueError:
        # 알 수 없는 해시 형식
        return False


def create_session_token(settings, user, now=None):
    """세션 JWT 생성 (계정 ID, 이름, 역할)"""
    now = now or utcnow()
    payload = {
        'sub': user.id,
        'name': user.name,
        'role': user.role,
        'iat': now,
        'exp': now + timedelta(hours=settings.jwt_expires_hours)
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_session_token(settings, token):
    """JWT 검증 후 클레임 반환 (실패 시 None)"""
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        logger.info("만료된 세션 토큰")
        return None
    except jwt.InvalidTokenError:
        return None


def set_session_cookie(response, settings, token):
    response.set_cookie(
        SESSION_COOKIE,
        token,
        max_age=settings.session_max_age,
        httponly=True,
        secure=settings.cookie_secure,
        samesite='Strict',
        path='/'
    )
    return response


def clear_session_cookie(response, settings):
    response.set_cookie(
        SESSION_COOKIE,
        '',
        max_age=0,
        httponly=True,
        secure=settings.cookie_secure,
        samesite='Strict',
        path='/'
    )
    return response


def _request_token():
    # 쿠키 우선, 없으면 Authorization 헤더
    token = request.cookies.get(SESSION_COOKIE)
    if token:
        return token
    auth_header = request.headers.get('Authorization', '')
    if auth_header.startswith('Bearer '):
        return auth_header.split(' ', 1)[1]
    return None


def login_required(*roles):
    """세션 인증 데코레이터 (roles 가 주어지면 역할도 확인)"""
    def decorator(f):
        @wraps(f)
        def decorated(*args, **kwargs):
            token = _request_token()
            claims = decode_session_token(get_settings(), token) if token else None
            if not claims:
                raise AuthenticationError('unauthorized')
            if roles and claims.get('role') not in roles:
                raise ForbiddenError('forbidden')
            g.current_user = claims
            return f(*args, **kwargs)
        return decorated
    return decorator


def _account_state(store, user):
    if user.is_student:
        # 학생은 students 컬렉션의 상태를 따름
        profile = store.get_student(user.id) or {}
        return profile.get('account_state') or DEACTIVATED
    return user.account_state


def authenticate(store, settings, payload, user_agent='', client_ip='unknown', now=None):
    """로그인 처리

    검사는 순서대로 진행되며 실패하면 즉시 에러를 던집니다.
    기기 목록 기록은 모든 검사를 통과한 뒤 마지막에 한 번만 일어납니다.
    성공 시 (User, JWT) 반환.
    """
    payload = json_object(payload)
    raw_id = payload.get('id')
    password = payload.get('password')
    if raw_id in (None, '') or password in (None, ''):
        raise ValidationError('id_and_password_required')
    if not isinstance(password, str):
        raise ValidationError('invalid_password')

    account_id = normalize_account_id(raw_id)
    if not account_id:
        raise ValidationError('invalid_id')

    data = store.get_user(account_id)
    if not data:
        logger.info(f"로그인 실패 (계정 없음): {account_id}")
        raise AuthenticationError('user_not_found')

    user = User.from_dict(data, doc_id=account_id)
    if not verify_password(password, user.password):
        logger.info(f"로그인 실패 (비밀번호 불일치): {account_id}")
        raise AuthenticationError('wrong_password')

    if _account_state(store, user) != ACTIVATED:
        if user.is_student:
            raise ForbiddenError('student_account_deactivated')
        raise ForbiddenError('account_deactivated')

    now = now or utcnow()
    if settings.subscription_enabled:
        check_subscription_access(store, user.role, now)

    if settings.device_limitations_enabled and user.role not in DEVICE_EXEMPT_ROLES:
        now_text = format_datetime(now, settings.display_timezone)
        device = build_device(payload.get('device_id'), client_ip, user_agent, now_text)
        limitations = store.register_device(user.id, device, now_text)
        logger.info(
            f"기기 확인: {user.id} / {device.device_id} "
            f"({len(limitations.devices)}/{limitations.allowed_devices})"
        )

    token = create_session_token(settings, user, now)
    logger.info(f"✅ 로그인 성공: {user.id} ({user.role})")
    return user, token

# tutor_backend/api_routes.py
from flask import Blueprint, request, jsonify, g
import logging

from .auth import authenticate, clear_session_cookie, login_required, set_session_cookie
from .config import get_settings
from .database import get_store
from .devices import (
    ASSISTANTS, DEVICE_ADMIN_ROLES, STUDENTS,
    delete_device, ensure_enabled, list_devices, resolve_client_ip, update_allowed_devices
)
from . import lessons
from .utils import json_object

logger = logging.getLogger(__name__)

api_bp = Blueprint('api', __name__)

STAFF_ROLES = ('admin', 'developer', 'assistant')


# ==== 인증 ====

@api_bp.route('/auth/login', methods=['POST'])
def api_login():
    """로그인 API (세션 쿠키 발급)"""
    settings = get_settings()
    client_ip = resolve_client_ip(request.headers.get('X-Forwarded-For'), request.remote_addr)

    user, token = authenticate(
        get_store(),
        settings,
        request.get_json(silent=True),
        user_agent=request.headers.get('User-Agent', ''),
        client_ip=client_ip
    )

    response = jsonify({'success': True, 'message': 'Login successful', 'role': user.role})
    return set_session_cookie(response, settings, token)


@api_bp.route('/auth/logout', methods=['POST'])
def api_logout():
    """로그아웃 (쿠키 삭제)"""
    response = jsonify({'success': True})
    return clear_session_cookie(response, get_settings())


@api_bp.route('/auth/me', methods=['GET'])
@login_required()
def api_me():
    claims = g.current_user
    return jsonify({'id': claims.get('sub'), 'name': claims.get('name'), 'role': claims.get('role')})


# ==== 기기 관리 ====

def _devices_endpoint(family):
    ensure_enabled(get_settings())
    store = get_store()

    if request.method == 'GET':
        return jsonify(list_devices(
            store,
            get_settings(),
            family,
            page=request.args.get('page'),
            limit=request.args.get('limit'),
            search=request.args.get('search')
        ))

    if request.method == 'PATCH':
        data = json_object(request.get_json(silent=True))
        update_allowed_devices(store, family, data.get('id'), data.get('allowed_devices'))
        return jsonify({'success': True})

    # DELETE
    delete_device(store, family, request.args.get('id'), request.args.get('device_id'))
    return jsonify({'success': True})


@api_bp.route('/students/devices', methods=['GET', 'PATCH', 'DELETE'])
@login_required(*DEVICE_ADMIN_ROLES)
def students_devices():
    """학생 기기 목록 / 허용 기기 수 변경 / 기기 삭제"""
    return _devices_endpoint(STUDENTS)


@api_bp.route('/assistants/devices', methods=['GET', 'PATCH', 'DELETE'])
@login_required(*DEVICE_ADMIN_ROLES)
def assistants_devices():
    """조교 / 관리자 기기 목록 / 허용 기기 수 변경 / 기기 삭제"""
    return _devices_endpoint(ASSISTANTS)


# ==== 수업 영상 세션 ====

@api_bp.route('/homeworks_videos', methods=['GET', 'POST', 'PUT', 'DELETE'])
@login_required(*STAFF_ROLES)
def homeworks_videos():
    """수업 영상 세션 CRUD"""
    store = get_store()
    settings = get_settings()
    session_id = request.args.get('id')

    if request.method == 'GET':
        if session_id:
            return jsonify(lessons.get_session(store, session_id))
        return jsonify({'sessions': lessons.list_sessions(store)})

    if request.method == 'POST':
        session = lessons.create_session(store, settings, request.get_json(silent=True))
        return jsonify({'success': True, 'session': session}), 201

    if request.method == 'PUT':
        session = lessons.update_session(store, settings, session_id, request.get_json(silent=True))
        return jsonify({'success': True, 'session': session})

    lessons.delete_session(store, session_id)
    return jsonify({'success': True})

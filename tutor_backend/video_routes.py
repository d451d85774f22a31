# tutor_backend/video_routes.py
"""영상 업로드 / 스트리밍 라우트"""

from flask import Blueprint, request, jsonify
from botocore.exceptions import BotoCoreError, ClientError
import logging

from .auth import login_required
from .config import get_settings
from .storage import ObjectNotFound, StorageNotConfigured, get_storage
from .streaming import build_video_response
from .video_handler import process_proxy_upload, request_upload_key
from .utils import json_object

logger = logging.getLogger(__name__)

video_bp = Blueprint('videos', __name__)

UPLOAD_ROLES = ('admin', 'developer', 'assistant')


def _storage_unavailable():
    return jsonify({'error': 'r2_configuration_missing', 'message': 'R2 configuration is missing'}), 500


@video_bp.route('/upload/r2-signed-url', methods=['POST'])
@login_required(*UPLOAD_ROLES)
def r2_signed_url():
    """업로드 키 + presigned PUT URL 발급"""
    key, _ = request_upload_key(get_settings(), request.get_json(silent=True))
    try:
        signed_url = get_storage().generate_presigned_put_url(key, expires_in=3600)
    except StorageNotConfigured:
        return _storage_unavailable()
    except (BotoCoreError, ClientError) as e:
        logger.error(f"Presigned URL 생성 실패: {e}")
        return jsonify({'error': 'failed_to_generate_signed_url'}), 500
    return jsonify({'signedUrl': signed_url, 'key': key})


@video_bp.route('/upload/r2-key', methods=['POST'])
@login_required(*UPLOAD_ROLES)
def r2_upload_key():
    """프록시 업로드용 키만 발급"""
    key, _ = request_upload_key(get_settings(), request.get_json(silent=True))
    return jsonify({'key': key})


@video_bp.route('/upload/r2-proxy-upload', methods=['POST'])
@login_required(*UPLOAD_ROLES)
def r2_proxy_upload():
    """같은 도메인 프록시를 통한 업로드 (multipart: file, key)"""
    file = request.files.get('file')
    key = request.form.get('key')
    try:
        process_proxy_upload(get_storage(), file, key)
    except StorageNotConfigured:
        return _storage_unavailable()
    except (BotoCoreError, ClientError, OSError) as e:
        logger.error(f"❌ R2 프록시 업로드 실패: {e}")
        return jsonify({'error': 'upload_failed', 'message': str(e)}), 500
    return jsonify({'success': True, 'key': key.strip()})


@video_bp.route('/upload/r2-video-url', methods=['POST'])
@login_required()
def r2_video_url():
    """재생용 presigned GET URL 발급 (4시간)"""
    data = json_object(request.get_json(silent=True))
    key = data.get('key')
    if not key:
        return jsonify({'error': 'key_required'}), 400
    try:
        signed_url = get_storage().generate_presigned_get_url(key, expires_in=14400)
    except StorageNotConfigured:
        return _storage_unavailable()
    except (BotoCoreError, ClientError) as e:
        logger.error(f"재생 URL 생성 실패: {e}")
        return jsonify({'error': 'failed_to_generate_video_url'}), 500
    return jsonify({'signedUrl': signed_url})


@video_bp.route('/videos/<path:key>', methods=['GET', 'HEAD'])
@login_required()
def stream_video(key):
    """R2 영상 스트리밍 (Range 지원)"""
    if not key:
        return jsonify({'error': 'video_key_required'}), 400

    try:
        return build_video_response(
            get_storage(),
            key,
            range_header=request.headers.get('Range'),
            head_only=request.method == 'HEAD'
        )
    except ObjectNotFound:
        return jsonify({'error': 'video_not_found'}), 404
    except StorageNotConfigured:
        return _storage_unavailable()
    except (BotoCoreError, ClientError) as e:
        logger.error(f"영상 스트리밍 오류 ({key}): {e}")
        return jsonify({'error': 'failed_to_stream_video'}), 500

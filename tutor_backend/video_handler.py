# tutor_backend/video_handler.py
"""영상 업로드 처리

1) 서버가 고유한 오브젝트 키를 발급하고
2) 클라이언트가 같은 도메인의 프록시 엔드포인트로 파일을 보내면
   임시 파일에 저장한 뒤 R2 에 한 번에 업로드합니다.
"""

import os
import re
import secrets
import string
import tempfile
import time
from pathlib import Path
import logging

from .errors import ValidationError
from .utils import json_object

logger = logging.getLogger(__name__)

KEY_PREFIX = 'videos'
DEFAULT_CONTENT_TYPE = 'application/octet-stream'
_RANDOM_ALPHABET = string.ascii_lowercase + string.digits


def sanitize_file_name(file_name):
    return re.sub(r'[^a-zA-Z0-9._-]', '_', file_name)


def mint_object_key(file_name, now_ms=None):
    """'videos/<타임스탬프ms>_<랜덤 8자>_<파일명>' 형식 키 생성"""
    timestamp = now_ms if now_ms is not None else int(time.time() * 1000)
    suffix = ''.join(secrets.choice(_RANDOM_ALPHABET) for _ in range(8))
    return f"{KEY_PREFIX}/{timestamp}_{suffix}_{sanitize_file_name(file_name)}"


def request_upload_key(settings, payload):
    """업로드 키 발급 요청 검증 후 (키, 콘텐츠 타입) 반환"""
    payload = json_object(payload)
    file_name = payload.get('fileName')
    content_type = payload.get('contentType')
    if not file_name or not content_type or not isinstance(file_name, str):
        raise ValidationError('fileName_and_contentType_required')
    if content_type not in settings.allowed_video_content_types:
        raise ValidationError(
            'invalid_file_type',
            'Invalid file type. Please upload a video file (MP4, WebM, OGG, MOV, AVI, MKV).'
        )
    return mint_object_key(file_name), content_type


def process_proxy_upload(storage, file, key):
    """프록시 업로드: 임시 파일로 받은 뒤 PutObject 한 번으로 업로드"""
    if file is None or not file.filename:
        raise ValidationError('no_file_provided')
    key = (key or '').strip()
    if not key:
        raise ValidationError('key_required')

    content_type = file.mimetype or DEFAULT_CONTENT_TYPE
    ext = Path(file.filename).suffix.lower()

    tmp_file = tempfile.NamedTemporaryFile(suffix=ext, delete=False)
    tmp_path = Path(tmp_file.name)
    try:
        # 저장 실패 시에도 임시 파일은 지움
        with tmp_file:
            file.save(tmp_file)
        size = os.path.getsize(tmp_path)
        logger.info(f"R2 업로드 시작: {key} ({size / 1024 / 1024:.1f}MB, {content_type})")
        storage.put_file(tmp_path, key, content_type)
    finally:
        tmp_path.unlink(missing_ok=True)

    logger.info(f"✅ R2 업로드 완료: {key}")
    return key

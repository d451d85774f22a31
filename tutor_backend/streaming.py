# tutor_backend/streaming.py
"""영상 스트리밍 프록시

브라우저 <video> 의 Range 요청을 R2 GetObject 범위 요청으로 바꿔 전달합니다.
"""

import re
import logging

from botocore.exceptions import BotoCoreError, ClientError
from flask import Response

from .errors import RangeNotSatisfiable

logger = logging.getLogger(__name__)

RANGE_RE = re.compile(r'^bytes=(\d*)-(\d*)$')
CHUNK_SIZE = 64 * 1024
# 'bytes=start-' 요청은 최대 5MB 까지만 보냄
OPEN_RANGE_CHUNK = 5 * 1024 * 1024
CACHE_CONTROL = 'private, max-age=3600'

MIME_TYPES = {
    '.mp4': 'video/mp4',
    '.webm': 'video/webm',
    '.ogg': 'video/ogg',
    '.ogv': 'video/ogg',
    '.mov': 'video/quicktime',
    '.avi': 'video/x-msvideo',
    '.mkv': 'video/x-matroska',
    '.m4v': 'video/x-m4v',
}


def guess_content_type(key):
    lower = key.lower()
    for ext, mime in MIME_TYPES.items():
        if lower.endswith(ext):
            return mime
    return 'application/octet-stream'


def parse_range_header(header, total_size):
    """Range 헤더 -> (start, end) 포함 범위

    지원 형식: bytes=start-end, bytes=start-, bytes=-suffix
    end 는 객체 크기에 맞춰 잘라내고, 만족할 수 없는 범위는 RangeNotSatisfiable.
    """
    match = RANGE_RE.match(header.strip())
    if not match:
        raise RangeNotSatisfiable(total_size)

    first, last = match.groups()
    if first and last:
        start, end = int(first), int(last)
        if start > end:
            raise RangeNotSatisfiable(total_size)
        end = min(end, total_size - 1)
    elif first:
        start = int(first)
        end = min(start + OPEN_RANGE_CHUNK - 1, total_size - 1)
    elif last:
        suffix = int(last)
        if suffix == 0:
            raise RangeNotSatisfiable(total_size)
        start = max(0, total_size - suffix)
        end = total_size - 1
    else:
        raise RangeNotSatisfiable(total_size)

    if start >= total_size:
        raise RangeNotSatisfiable(total_size)
    return start, end


def iter_object_body(body, key):
    """R2 응답 본문을 청크 단위로 전달

    전송 중 오류가 나면 로그만 남기고 응답을 끝냅니다 (재시도 없음).
    """
    try:
        for chunk in body.iter_chunks(CHUNK_SIZE):
            yield chunk
    except (BotoCoreError, ClientError, OSError) as e:
        logger.error(f"스트림 전송 오류 ({key}): {e}")
    finally:
        body.close()


def _base_headers(content_type, length):
    return {
        'Content-Type': content_type,
        'Content-Length': str(length),
        'Accept-Ranges': 'bytes',
        'Cache-Control': CACHE_CONTROL,
    }


def build_video_response(storage, key, range_header=None, head_only=False):
    """전체(200) 또는 부분(206) 영상 응답 생성

    ObjectNotFound / ClientError 는 호출한 라우트에서 처리합니다.
    """
    if range_header:
        meta = storage.head_object(key)
        total_size = meta['ContentLength']
        content_type = meta.get('ContentType') or guess_content_type(key)
        start, end = parse_range_header(range_header, total_size)

        headers = _base_headers(content_type, end - start + 1)
        headers['Content-Range'] = f'bytes {start}-{end}/{total_size}'
        if head_only:
            return Response(status=206, headers=headers)

        result = storage.get_object(key, start, end)
        return Response(
            iter_object_body(result['Body'], key),
            status=206,
            headers=headers,
            direct_passthrough=True
        )

    if head_only:
        meta = storage.head_object(key)
        headers = _base_headers(meta.get('ContentType') or guess_content_type(key), meta['ContentLength'])
        return Response(status=200, headers=headers)

    result = storage.get_object(key)
    content_type = result.get('ContentType') or guess_content_type(key)
    headers = _base_headers(content_type, result['ContentLength'])
    return Response(
        iter_object_body(result['Body'], key),
        status=200,
        headers=headers,
        direct_passthrough=True
    )

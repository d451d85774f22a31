# tutor_backend/errors.py
"""API 에러 정의

핸들러와 도메인 함수는 아래 예외를 던지고, app.py 에 등록된
에러 핸들러가 ``{"error": code, "message": ...}`` JSON 으로 변환합니다.
"""

from flask import jsonify, Response


class ApiError(Exception):
    status_code = 500
    code = 'internal_server_error'

    def __init__(self, code=None, message=None, errors=None):
        super().__init__(message or code or self.code)
        if code:
            self.code = code
        self.message = message
        self.errors = errors

    def to_dict(self):
        body = {'error': self.code}
        if self.message:
            body['message'] = self.message
        if self.errors:
            body['errors'] = self.errors
        return body

    def to_response(self):
        return jsonify(self.to_dict()), self.status_code


class ValidationError(ApiError):
    status_code = 400
    code = 'validation_failed'


class AuthenticationError(ApiError):
    status_code = 401
    code = 'unauthorized'


class ForbiddenError(ApiError):
    status_code = 403
    code = 'forbidden'


class DeviceLimitReached(ForbiddenError):
    code = 'device_limit_reached'


class NotFoundError(ApiError):
    status_code = 404
    code = 'not_found'


class ConflictError(ApiError):
    status_code = 409
    code = 'conflict'


class RangeNotSatisfiable(ApiError):
    """요청한 Range 가 객체 범위를 벗어남 (본문 없이 416 반환)"""
    status_code = 416
    code = 'range_not_satisfiable'

    def __init__(self, total_size):
        super().__init__()
        self.total_size = total_size

    def to_response(self):
        response = Response(status=self.status_code)
        response.headers['Content-Range'] = f'bytes */{self.total_size}'
        return response

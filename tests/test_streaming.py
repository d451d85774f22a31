import io

import pytest
from botocore.response import StreamingBody
from botocore.exceptions import BotoCoreError
from botocore.stub import ANY

from tutor_backend.errors import RangeNotSatisfiable
from tutor_backend.streaming import OPEN_RANGE_CHUNK, guess_content_type, iter_object_body, parse_range_header

from .conftest import BUCKET

KEY = 'videos/1700000000000_abcd1234_lesson.mp4'
DATA = b'0123456789'


def _body(data):
    return StreamingBody(io.BytesIO(data), len(data))


def _stub_head(stubber, size=len(DATA), content_type='video/mp4'):
    stubber.add_response(
        'head_object',
        {'ContentLength': size, 'ContentType': content_type},
        {'Bucket': BUCKET, 'Key': KEY}
    )


def _stub_get(stubber, data, byte_range=None):
    expected = {'Bucket': BUCKET, 'Key': KEY}
    if byte_range:
        expected['Range'] = byte_range
    stubber.add_response(
        'get_object',
        {'Body': _body(data), 'ContentLength': len(data), 'ContentType': 'video/mp4'},
        expected
    )


class TestParseRangeHeader:

    def test_every_in_bounds_range_is_kept_exactly(self):
        total = 10
        for start in range(total):
            for end in range(start, total):
                assert parse_range_header(f'bytes={start}-{end}', total) == (start, end)

    def test_end_past_object_is_clamped(self):
        assert parse_range_header('bytes=5-500', 10) == (5, 9)

    def test_open_range_is_capped_to_chunk(self):
        total = OPEN_RANGE_CHUNK * 3
        assert parse_range_header('bytes=100-', total) == (100, 100 + OPEN_RANGE_CHUNK - 1)
        assert parse_range_header('bytes=4-', 10) == (4, 9)

    @pytest.mark.parametrize('suffix, expected', [
        (1, (9, 9)),
        (4, (6, 9)),
        (10, (0, 9)),
        (25, (0, 9)),
    ])
    def test_suffix_range_returns_last_bytes(self, suffix, expected):
        assert parse_range_header(f'bytes=-{suffix}', 10) == expected

    @pytest.mark.parametrize('header', [
        'bytes=10-12',
        'bytes=10-',
        'bytes=42-50',
        'bytes=-0',
        'bytes=-',
        'bytes=6-2',
        'items=0-5',
        'bytes=0-1,4-5',
        'garbage',
    ])
    def test_unsatisfiable_ranges(self, header):
        with pytest.raises(RangeNotSatisfiable) as exc:
            parse_range_header(header, 10)
        response = exc.value.to_response()
        assert response.status_code == 416
        assert response.headers['Content-Range'] == 'bytes */10'


def test_guess_content_type():
    assert guess_content_type('videos/a.MP4') == 'video/mp4'
    assert guess_content_type('videos/a.mkv') == 'video/x-matroska'
    assert guess_content_type('videos/a.bin') == 'application/octet-stream'


class TestVideoStreamRoute:

    def test_requires_session(self, client):
        response = client.get(f'/api/videos/{KEY}')
        assert response.status_code == 401
        assert response.get_json()['error'] == 'unauthorized'

    def test_partial_content(self, client, login_as, stubber):
        login_as('student', '12')
        _stub_head(stubber)
        _stub_get(stubber, DATA[2:6], 'bytes=2-5')

        response = client.get(f'/api/videos/{KEY}', headers={'Range': 'bytes=2-5'})

        assert response.status_code == 206
        assert response.data == b'2345'
        assert response.headers['Content-Range'] == 'bytes 2-5/10'
        assert response.headers['Content-Length'] == '4'
        assert response.headers['Content-Type'] == 'video/mp4'
        assert response.headers['Accept-Ranges'] == 'bytes'
        assert response.headers['Cache-Control'] == 'private, max-age=3600'
        stubber.assert_no_pending_responses()

    def test_suffix_range(self, client, login_as, stubber):
        login_as('student', '12')
        _stub_head(stubber)
        _stub_get(stubber, DATA[7:], 'bytes=7-9')

        response = client.get(f'/api/videos/{KEY}', headers={'Range': 'bytes=-3'})

        assert response.status_code == 206
        assert response.data == b'789'
        assert response.headers['Content-Range'] == 'bytes 7-9/10'

    def test_out_of_bounds_range(self, client, login_as, stubber):
        login_as('student', '12')
        _stub_head(stubber)

        response = client.get(f'/api/videos/{KEY}', headers={'Range': 'bytes=10-20'})

        assert response.status_code == 416
        assert response.headers['Content-Range'] == 'bytes */10'
        stubber.assert_no_pending_responses()

    def test_full_object_without_range(self, client, login_as, stubber):
        login_as('assistant', '5')
        _stub_get(stubber, DATA)

        response = client.get(f'/api/videos/{KEY}')

        assert response.status_code == 200
        assert response.data == DATA
        assert response.headers['Content-Length'] == '10'
        assert response.headers['Accept-Ranges'] == 'bytes'
        assert 'Content-Range' not in response.headers

    def test_head_request_has_no_body(self, client, login_as, stubber):
        login_as('student', '12')
        _stub_head(stubber)

        response = client.head(f'/api/videos/{KEY}')

        assert response.status_code == 200
        assert response.headers['Content-Length'] == '10'
        assert response.data == b''

    def test_missing_object_with_range(self, client, login_as, stubber):
        login_as('student', '12')
        stubber.add_client_error('head_object', service_error_code='404', http_status_code=404)

        response = client.get(f'/api/videos/{KEY}', headers={'Range': 'bytes=0-1'})

        assert response.status_code == 404
        assert response.get_json()['error'] == 'video_not_found'

    def test_missing_object_without_range(self, client, login_as, stubber):
        login_as('student', '12')
        stubber.add_client_error('get_object', service_error_code='NoSuchKey', http_status_code=404)

        response = client.get(f'/api/videos/{KEY}')

        assert response.status_code == 404
        assert response.get_json()['error'] == 'video_not_found'

    def test_store_failure_is_generic_error(self, client, login_as, stubber):
        login_as('student', '12')
        stubber.add_client_error('get_object', service_error_code='InternalError', http_status_code=500)

        response = client.get(f'/api/videos/{KEY}')

        assert response.status_code == 500
        assert response.get_json()['error'] == 'failed_to_stream_video'


def test_ten_byte_upload_then_range_read(client, login_as, stubber):
    login_as('admin', '1')
    stubber.add_response(
        'put_object',
        {},
        {'Bucket': BUCKET, 'Key': KEY, 'Body': ANY, 'ContentType': 'video/mp4'}
    )
    upload = client.post(
        '/api/upload/r2-proxy-upload',
        data={'file': (io.BytesIO(DATA), 'lesson.mp4', 'video/mp4'), 'key': KEY},
        content_type='multipart/form-data'
    )
    assert upload.status_code == 200
    assert upload.get_json() == {'success': True, 'key': KEY}

    _stub_head(stubber)
    _stub_get(stubber, DATA[2:6], 'bytes=2-5')
    response = client.get(f'/api/videos/{KEY}', headers={'Range': 'bytes=2-5'})

    assert response.status_code == 206
    assert len(response.data) == 4
    assert response.headers['Content-Range'] == 'bytes 2-5/10'




class _FailingBody:
    """첫 청크 뒤에 연결이 끊기는 R2 응답 본문"""

    def __init__(self, first_chunk):
        self.first_chunk = first_chunk
        self.closed = False

    def iter_chunks(self, chunk_size):
        yield self.first_chunk
        raise BotoCoreError()

    def close(self):
        self.closed = True


def test_mid_transfer_failure_keeps_sent_bytes_and_closes_body():
    body = _FailingBody(b'0123')

    chunks = list(iter_object_body(body, KEY))

    assert chunks == [b'0123']
    assert body.closed is True


def test_mid_transfer_failure_through_route(client, login_as, storage, monkeypatch):
    login_as('student', '12')
    body = _FailingBody(DATA[:4])
    monkeypatch.setattr(storage, 'get_object', lambda key, start=None, end=None: {
        'Body': body, 'ContentLength': len(DATA), 'ContentType': 'video/mp4'
    })

    response = client.get(f'/api/videos/{KEY}')

    assert response.status_code == 200
    assert response.data == DATA[:4]
    assert body.closed is True

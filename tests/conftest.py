import copy
import itertools

import boto3
import pytest
from botocore.config import Config
from botocore.stub import Stubber

from tutor_backend.app import create_app
from tutor_backend.auth import create_session_token, hash_password
from tutor_backend.config import Settings
from tutor_backend.devices import apply_login, without_device
from tutor_backend.models import DeviceLimitations, User
from tutor_backend.storage import ObjectStorage

BUCKET = 'videos-bucket'
PASSWORD = 'secret-pass'


class MemoryStore:
    """FirestoreStore 와 같은 인터페이스를 가진 메모리 저장소"""

    def __init__(self):
        self.users = {}
        self.students = {}
        self.subscription = None
        self.sessions = {}
        self._ids = itertools.count(1)

    def ping(self):
        return None

    def add_user(self, account_id, role='student', **fields):
        doc = {
            'id': account_id,
            'name': fields.pop('name', f'User {account_id}'),
            'role': role,
            'account_state': 'Activated',
        }
        doc.update(fields)
        self.users[account_id] = doc
        return doc

    def add_student(self, account_id, **fields):
        doc = {'id': account_id, 'account_state': 'Activated'}
        doc.update(fields)
        self.students[account_id] = doc
        return doc

    def get_user(self, account_id):
        return copy.deepcopy(self.users.get(str(account_id)))

    def get_student(self, account_id):
        return copy.deepcopy(self.students.get(str(account_id)))

    def list_users(self, roles):
        return [copy.deepcopy(u) for u in self.users.values() if u.get('role') in roles]

    def list_students(self):
        return [copy.deepcopy(s) for s in self.students.values()]

    def register_device(self, account_id, device, now_text):
        user = self.users[str(account_id)]
        limitations = DeviceLimitations.from_dict(user.get('device_limitations'))
        updated = apply_login(limitations, device, now_text)
        user['device_limitations'] = updated.to_dict()
        return updated

    def set_allowed_devices(self, account_id, roles, allowed):
        user = self.users.get(str(account_id))
        if not user or user.get('role') not in roles:
            return False
        user.setdefault('device_limitations', {})['allowed_devices'] = allowed
        return True

    def remove_device(self, account_id, roles, device_id):
        user = self.users.get(str(account_id))
        if not user or user.get('role') not in roles:
            return False
        limitations = DeviceLimitations.from_dict(user.get('device_limitations'))
        updated = without_device(limitations, device_id)
        if len(updated.devices) == len(limitations.devices):
            return False
        user['device_limitations']['devices'] = [d.to_dict() for d in updated.devices]
        return True

    def get_subscription(self):
        return copy.deepcopy(self.subscription)

    def deactivate_subscription(self):
        self.subscription.update({
            'active': False,
            'subscription_duration': None,
            'date_of_subscription': None,
            'date_of_expiration': None,
            'cost': None,
            'note': None,
        })

    def list_sessions(self):
        return [(sid, copy.deepcopy(data)) for sid, data in self.sessions.items()]

    def get_session(self, session_id):
        return copy.deepcopy(self.sessions.get(session_id))

    def create_session(self, data):
        session_id = f'session-{next(self._ids)}'
        self.sessions[session_id] = copy.deepcopy(data)
        return session_id

    def update_session(self, session_id, data):
        if session_id not in self.sessions:
            return False
        self.sessions[session_id].update(copy.deepcopy(data))
        return True

    def delete_session(self, session_id):
        return self.sessions.pop(session_id, None) is not None


@pytest.fixture(scope='session')
def password_hash():
    return hash_password(PASSWORD)


@pytest.fixture
def settings():
    return Settings(
        jwt_secret='test-secret',
        flask_secret_key='test-flask-secret',
        device_limitations_enabled=True,
        subscription_enabled=True,
        cloudflare_account_id='test-account',
        r2_access_key_id='test-access-key',
        r2_secret_access_key='test-secret-key',
        r2_bucket_name=BUCKET,
    )


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def s3_client(settings):
    return boto3.client(
        's3',
        aws_access_key_id='test-access-key',
        aws_secret_access_key='test-secret-key',
        region_name='auto',
        endpoint_url=settings.storage_endpoint,
        config=Config(signature_version='s3v4', s3={'addressing_style': 'path'})
    )


@pytest.fixture
def stubber(s3_client):
    with Stubber(s3_client) as stub:
        yield stub


@pytest.fixture
def storage(settings, s3_client):
    return ObjectStorage(settings, client=s3_client)


@pytest.fixture
def app(settings, store, storage):
    app = create_app(settings, store=store, storage=storage)
    app.config['TESTING'] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def login_as(client, settings):
    """역할별 세션 쿠키를 테스트 클라이언트에 설정"""
    def _login(role='admin', account_id='900', name='Staff'):
        token = create_session_token(settings, User(id=account_id, name=name, role=role))
        client.set_cookie('token', token)
        return token
    return _login

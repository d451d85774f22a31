# tutor_backend/database.py
"""Firestore 데이터베이스 연동

컬렉션:
- users: 계정 (문서 ID = 계정 ID 문자열)
- students: 학생 프로필 (account_state, 이름, 전화번호)
- subscription: 단일 문서 'current'
- homeworks_videos: 수업 영상 세션
"""

import threading
import logging
from datetime import datetime, timezone

import firebase_admin
from firebase_admin import credentials, firestore
from flask import current_app

from .devices import apply_login, without_device
from .models import DeviceLimitations
from .utils import normalize_account_id

logger = logging.getLogger(__name__)

USERS = 'users'
STUDENTS = 'students'
SUBSCRIPTION = 'subscription'
SESSIONS = 'homeworks_videos'
SUBSCRIPTION_DOC = 'current'

SUBSCRIPTION_RESET_FIELDS = {
    'active': False,
    'subscription_duration': None,
    'date_of_subscription': None,
    'date_of_expiration': None,
    'cost': None,
    'note': None,
}


@firestore.transactional
def _register_device_txn(transaction, user_ref, device, now_text):
    snapshot = user_ref.get(transaction=transaction)
    limitations = DeviceLimitations.from_dict((snapshot.to_dict() or {}).get('device_limitations'))
    updated = apply_login(limitations, device, now_text)
    transaction.update(user_ref, {'device_limitations': updated.to_dict()})
    return updated


@firestore.transactional
def _remove_device_txn(transaction, user_ref, device_id):
    snapshot = user_ref.get(transaction=transaction)
    limitations = DeviceLimitations.from_dict((snapshot.to_dict() or {}).get('device_limitations'))
    updated = without_device(limitations, device_id)
    if len(updated.devices) == len(limitations.devices):
        return False
    transaction.update(user_ref, {'device_limitations.devices': [d.to_dict() for d in updated.devices]})
    return True


class FirestoreStore:
    """Firestore 문서 저장소

    클라이언트는 처음 사용할 때 만들어지고 프로세스 전체에서 공유됩니다.
    """

    def __init__(self, settings):
        self.settings = settings
        self._client = None
        self._lock = threading.Lock()

    @property
    def db(self):
        if self._client is None:
            with self._lock:
                if self._client is None:
                    self._client = self._create_client()
        return self._client

    def _create_client(self):
        if not firebase_admin._apps:
            if self.settings.firebase_credentials:
                cred = credentials.Certificate(self.settings.firebase_credentials)
            else:
                cred = credentials.ApplicationDefault()
            options = {}
            if self.settings.firebase_project_id:
                options['projectId'] = self.settings.firebase_project_id
            firebase_admin.initialize_app(cred, options)
            logger.info("🔥 Firebase 초기화 완료")
        return firestore.client()

    def ping(self):
        self.db.collection(USERS).limit(1).get()

    # ---- 계정 ----

    def _user_ref(self, account_id):
        return self.db.collection(USERS).document(str(account_id))

    def get_user(self, account_id):
        doc = self._user_ref(account_id).get()
        return doc.to_dict() if doc.exists else None

    def get_student(self, account_id):
        doc = self.db.collection(STUDENTS).document(str(account_id)).get()
        return doc.to_dict() if doc.exists else None

    def list_users(self, roles):
        query = self.db.collection(USERS).where(filter=firestore.FieldFilter('role', 'in', list(roles)))
        return [doc.to_dict() for doc in query.stream()]

    def list_students(self):
        return [doc.to_dict() for doc in self.db.collection(STUDENTS).stream()]

    def _user_in_roles(self, account_id, roles):
        user = self.get_user(account_id)
        return user is not None and user.get('role') in roles

    def register_device(self, account_id, device, now_text):
        """기기 등록 (읽기-검사-쓰기를 하나의 트랜잭션으로)"""
        transaction = self.db.transaction()
        return _register_device_txn(transaction, self._user_ref(account_id), device, now_text)

    def set_allowed_devices(self, account_id, roles, allowed):
        if not self._user_in_roles(account_id, roles):
            return False
        self._user_ref(account_id).update({'device_limitations.allowed_devices': allowed})
        return True

    def remove_device(self, account_id, roles, device_id):
        if not self._user_in_roles(account_id, roles):
            return False
        transaction = self.db.transaction()
        return _remove_device_txn(transaction, self._user_ref(account_id), device_id)

    # ---- 구독 ----

    def get_subscription(self):
        doc = self.db.collection(SUBSCRIPTION).document(SUBSCRIPTION_DOC).get()
        return doc.to_dict() if doc.exists else None

    def deactivate_subscription(self):
        self.db.collection(SUBSCRIPTION).document(SUBSCRIPTION_DOC).update(dict(SUBSCRIPTION_RESET_FIELDS))

    # ---- 수업 영상 세션 ----

    def list_sessions(self):
        return [(doc.id, doc.to_dict()) for doc in self.db.collection(SESSIONS).stream()]

    def get_session(self, session_id):
        doc = self.db.collection(SESSIONS).document(session_id).get()
        return doc.to_dict() if doc.exists else None

    def create_session(self, data):
        now = datetime.now(timezone.utc)
        ref = self.db.collection(SESSIONS).document()
        ref.set({**data, 'created_at': now, 'updated_at': now})
        return ref.id

    def update_session(self, session_id, data):
        ref = self.db.collection(SESSIONS).document(session_id)
        if not ref.get().exists:
            return False
        ref.update({**data, 'updated_at': datetime.now(timezone.utc)})
        return True

    def delete_session(self, session_id):
        ref = self.db.collection(SESSIONS).document(session_id)
        if not ref.get().exists:
            return False
        ref.delete()
        return True

    # ---- 마이그레이션 ----

    def migrate_numeric_ids(self):
        """숫자로 저장된 id 필드를 문자열로 한 번에 변환

        문서 ID 가 계정 ID 와 다르면 계정 ID 를 문서 ID 로 하는 새 문서로 옮깁니다.
        """
        migrated = 0
        for collection in (USERS, STUDENTS):
            for doc in self.db.collection(collection).stream():
                data = doc.to_dict() or {}
                canonical = normalize_account_id(data.get('id'))
                if not canonical:
                    continue
                if data.get('id') == canonical and doc.id == canonical:
                    continue
                target = self.db.collection(collection).document(canonical)
                if doc.id != canonical and target.get().exists:
                    # 같은 계정 ID 문서가 이미 있으면 덮어쓰지 않음
                    logger.warning(f"ID 마이그레이션 건너뜀 (중복): {collection}/{doc.id} -> {canonical}")
                    continue
                data['id'] = canonical
                target.set(data)
                if doc.id != canonical:
                    doc.reference.delete()
                migrated += 1
                logger.info(f"ID 마이그레이션: {collection}/{doc.id} -> {canonical}")
        logger.info(f"✅ ID 마이그레이션 완료: {migrated}건")
        return migrated


def get_store():
    return current_app.extensions['tutor_store']

# tutor_backend/subscription.py

import logging

from .errors import ForbiddenError
from .utils import parse_datetime, utcnow

logger = logging.getLogger(__name__)

# 구독이 끝나도 로그인 가능한 역할
SUBSCRIPTION_EXEMPT_ROLES = ('developer', 'student')
EXPIRED_MESSAGE = 'Access unavailable: Subscription expired. Please contact the developer to renew.'


def is_expired(subscription, now=None):
    expiration = parse_datetime(subscription.get('date_of_expiration'))
    if expiration is None:
        return False
    return (now or utcnow()) >= expiration


def expire_subscription_if_due(store, now=None):
    """만료 시각이 지난 활성 구독을 비활성화

    (구독 문서, 이번 호출에서 만료 처리했는지) 튜플 반환
    """
    subscription = store.get_subscription()
    if not subscription:
        return None, False

    if subscription.get('active') and is_expired(subscription, now):
        logger.info("⏰ 구독 만료 시각 도달, 비활성화합니다")
        store.deactivate_subscription()
        subscription = dict(subscription, active=False)
        return subscription, True

    return subscription, False


def check_subscription_access(store, role, now=None):
    """구독 상태에 따라 로그인 허용 여부 확인"""
    subscription, just_expired = expire_subscription_if_due(store, now)
    if subscription is None or role in SUBSCRIPTION_EXEMPT_ROLES:
        return

    if just_expired:
        raise ForbiddenError('subscription_expired', EXPIRED_MESSAGE)
    if not subscription.get('active'):
        raise ForbiddenError('subscription_inactive', EXPIRED_MESSAGE)

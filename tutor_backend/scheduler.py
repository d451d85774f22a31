# tutor_backend/scheduler.py

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
import logging
import atexit

from .subscription import expire_subscription_if_due

logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler(
    timezone='UTC',
    job_defaults={
        'coalesce': True,
        'max_instances': 1
    }
)


def check_subscription_expiry(store):
    """만료된 구독 비활성화 (로그인이 없어도 주기적으로 확인)"""
    try:
        _, expired = expire_subscription_if_due(store)
        if expired:
            logger.info("⏰ 구독이 만료되어 비활성화되었습니다.")
    except Exception as e:
        # 다음 주기에 다시 시도
        logger.error(f"❌ 구독 만료 확인 실패: {e}")


def start_scheduler(store, settings):
    """스케줄러 시작"""
    if not settings.subscription_enabled:
        logger.info("구독 기능 비활성화: 스케줄러를 시작하지 않습니다.")
        return

    scheduler.add_job(
        func=check_subscription_expiry,
        args=[store],
        trigger=IntervalTrigger(minutes=settings.subscription_check_minutes),
        id='subscription_expiry',
        name='구독 만료 확인',
        replace_existing=True
    )

    scheduler.start()
    logger.info("🚀 백그라운드 스케줄러가 시작되었습니다.")

    # 앱 종료 시 스케줄러도 함께 종료
    atexit.register(lambda: scheduler.shutdown())

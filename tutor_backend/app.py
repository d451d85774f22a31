# tutor_backend/app.py (메인 애플리케이션)
import os
import logging
from datetime import datetime, timezone

import click
from botocore.exceptions import BotoCoreError, ClientError
from flask import Flask, jsonify
from google.api_core.exceptions import GoogleAPICallError
from werkzeug.exceptions import RequestEntityTooLarge

from .api_routes import api_bp
from .config import load_settings
from .database import FirestoreStore
from .errors import ApiError
from .scheduler import start_scheduler
from .storage import ObjectStorage
from .video_routes import video_bp

logger = logging.getLogger(__name__)

VERSION = '1.0.0'


def configure_logging():
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def register_error_handlers(app):
    @app.errorhandler(ApiError)
    def handle_api_error(error):
        if error.status_code >= 500:
            logger.error(f"API 오류: {error.code}")
        return error.to_response()

    @app.errorhandler(RequestEntityTooLarge)
    def handle_too_large(error):
        return jsonify({'error': 'file_too_large', 'message': 'File size exceeds 5GB limit.'}), 413

    @app.errorhandler(GoogleAPICallError)
    def handle_firestore_error(error):
        logger.error(f"❌ Firestore 오류: {error}")
        return jsonify({'error': 'internal_server_error'}), 500

    @app.errorhandler(ClientError)
    @app.errorhandler(BotoCoreError)
    def handle_storage_error(error):
        logger.error(f"❌ R2 오류: {error}")
        return jsonify({'error': 'internal_server_error'}), 500


def create_app(settings=None, store=None, storage=None):
    """Flask 앱 생성 (설정 / 저장소는 여기서 한 번만 만들어 주입)"""
    settings = settings or load_settings()

    app = Flask(__name__)
    app.secret_key = settings.flask_secret_key
    app.config['SETTINGS'] = settings
    app.config['MAX_CONTENT_LENGTH'] = settings.max_upload_bytes
    app.extensions['tutor_store'] = store or FirestoreStore(settings)
    app.extensions['tutor_storage'] = storage or ObjectStorage(settings)

    # Blueprint 등록
    app.register_blueprint(api_bp, url_prefix='/api')
    app.register_blueprint(video_bp, url_prefix='/api')
    register_error_handlers(app)

    @app.cli.command('migrate-ids')
    def migrate_ids():
        """숫자로 저장된 계정 ID 를 문자열로 변환 (일회성)"""
        migrated = app.extensions['tutor_store'].migrate_numeric_ids()
        click.echo(f"migrated {migrated} documents")

    @app.after_request
    def after_request(response):
        """보안 헤더 추가"""
        response.headers['X-Content-Type-Options'] = 'nosniff'
        response.headers['X-Frame-Options'] = 'DENY'
        return response

    # 헬스체크
    @app.route('/health', methods=['GET'])
    def health_check():
        """서비스 상태 확인"""
        try:
            app.extensions['tutor_store'].ping()
            firestore_status = 'healthy'
        except Exception as e:
            logger.warning(f"Firestore 상태 확인 실패: {e}")
            firestore_status = 'unhealthy'

        try:
            app.extensions['tutor_storage'].ping()
            r2_status = 'healthy'
        except Exception as e:
            logger.warning(f"R2 상태 확인 실패: {e}")
            r2_status = 'unhealthy'

        overall_status = 'healthy' if (firestore_status == 'healthy' and r2_status == 'healthy') else 'unhealthy'

        return {
            'status': overall_status,
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'services': {
                'firestore': firestore_status,
                'r2': r2_status,
            },
            'version': VERSION
        }, 200 if overall_status == 'healthy' else 503

    return app


def main():
    """개발 서버 실행 (`tutor-backend` 또는 `python -m tutor_backend.app`)"""
    configure_logging()
    app = create_app()

    # 스케줄러 시작
    start_scheduler(app.extensions['tutor_store'], app.config['SETTINGS'])

    port = int(os.environ.get("PORT", 8080))
    app.run(host="0.0.0.0", port=port, debug=os.environ.get('FLASK_DEBUG') == '1')


if __name__ == "__main__":
    main()

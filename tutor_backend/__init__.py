# tutor_backend/__init__.py
"""
Tutor Admin Backend

온라인 수업 관리자 백엔드 패키지입니다.

주요 모듈:
- app: Flask 앱 생성 (create_app)
- config: 설정 로드 (env.config + 환경변수)
- auth: 로그인, 세션 JWT 쿠키, 인증 데코레이터
- subscription: 구독 만료 확인
- devices: 기기 제한 및 기기 관리
- database: Firestore 연동
- storage: R2 (S3 호환) 오브젝트 스토리지
- lessons: 수업 영상 세션 관리
- video_handler: 업로드 키 발급 및 프록시 업로드
- streaming: Range 요청 스트리밍 프록시
- scheduler: 백그라운드 작업 스케줄링
- api_routes / video_routes: REST API 엔드포인트
"""

__version__ = "1.0.0"
__description__ = "Tutor Admin Backend"

# snapgram/__init__.py

# =====================================================================================
# 1. 환경 변수 로드 (가장 먼저 실행)
# =====================================================================================
from dotenv import load_dotenv
load_dotenv()

# =====================================================================================
# 2. 모듈 임포트 (Module Imports)
# =====================================================================================
import os
import logging
from flask import Flask, jsonify
from marshmallow import ValidationError
from werkzeug.exceptions import HTTPException
import firebase_admin
from firebase_admin import credentials

# - 설정 / 오류
from snapgram.core.config import config_by_name
from snapgram.core.errors import SnapgramError

# - API 블루프린트
from snapgram.api.auth.routes import auth_bp
from snapgram.api.posts.routes import posts_bp

# - 서비스 모듈
from snapgram.services.storage_service import StorageService
from snapgram.api.auth.services import AuthService
from snapgram.api.posts.services import PostService
from snapgram.query import QueryCache, QueryClient, SnapgramQueries, LoopRunner

def _init_firebase(app: Flask):
    if firebase_admin._apps:
        return
    cred_path = app.config.get('FIREBASE_CREDENTIALS_PATH')
    if not cred_path or not os.path.exists(cred_path):
        raise FileNotFoundError(f"Firebase 인증 파일을 찾을 수 없습니다: {cred_path}")
    cred = credentials.Certificate(cred_path)
    firebase_admin.initialize_app(cred, {
        'storageBucket': app.config['FIREBASE_STORAGE_BUCKET']
    })

def create_app(config_name=None, services=None):
    """
    Flask 애플리케이션 팩토리 함수.

    :param config_name: 'development' / 'testing'. 없으면 SNAPGRAM_ENV 환경 변수를 따릅니다.
    :param services: 미리 만든 서비스 dict (테스트용). 주어지면 Firebase 초기화를 건너뜁니다.
    """
    # =====================================================================================
    # 3. Flask 앱 생성 및 기본 설정
    # =====================================================================================
    config_name = config_name or os.getenv('SNAPGRAM_ENV', 'development')

    app = Flask(__name__)
    app.config.from_object(config_by_name[config_name])
    app.json.ensure_ascii = False

    # =====================================================================================
    # 4. 서비스 인스턴스 생성 및 'app.services'에 저장 (의존성 주입)
    # =====================================================================================
    if services is not None:
        app.services = dict(services)
    else:
        _init_firebase(app)
        app.services = {}

        # 4-1. 다른 서비스의 기반이 되는 Storage 서비스 먼저 생성
        try:
            storage_instance = StorageService()
            storage_instance.init_app(app)
            app.services['storage'] = storage_instance
        except Exception as e:
            logging.error(f"Failed to initialize storage service: {e}")
            raise

        # 4-2. 원격 호출 서비스
        app.services['auth'] = AuthService(config=app.config)
        app.services['posts'] = PostService(storage_service=app.services['storage'], config=app.config)

    # 4-3. 쿼리 캐시 계층 (주입되지 않은 것만 생성)
    if 'query_client' not in app.services:
        app.services['query_client'] = QueryClient(QueryCache(gc_time=app.config.get('QUERY_GC_TIME')))
    if 'queries' not in app.services:
        app.services['queries'] = SnapgramQueries(
            auth_service=app.services['auth'],
            post_service=app.services['posts'],
            query_client=app.services['query_client']
        )
    if 'runner' not in app.services:
        app.services['runner'] = LoopRunner().start()

    # =====================================================================================
    # 5. 블루프린트 등록
    # =====================================================================================
    app.register_blueprint(auth_bp, url_prefix='/api/auth')
    app.register_blueprint(posts_bp, url_prefix='/api/posts')

    # =====================================================================================
    # 6. 전역 에러 핸들러 설정
    # =====================================================================================
    @app.errorhandler(SnapgramError)
    def handle_snapgram_error(err):
        if err.status_code >= 500:
            logging.error(f"원격 호출 실패 ({err.operation}): {err.message}", exc_info=err.__cause__ is not None)
        return jsonify(err.to_dict()), err.status_code

    @app.errorhandler(ValidationError)
    def handle_marshmallow_validation(err):
        response = {"error_code": "VALIDATION_ERROR", "details": err.messages}
        return jsonify(response), 400

    @app.errorhandler(Exception)
    def handle_generic_exception(err):
        if isinstance(err, HTTPException):
            return err
        # 다른 핸들러에서 처리되지 않은 모든 예외를 여기서 처리
        logging.error(f"An unhandled exception occurred: {err}", exc_info=True)
        response = {"error_code": "INTERNAL_SERVER_ERROR", "message": "서버 내부에서 예상치 못한 오류가 발생했습니다."}
        return jsonify(response), 500

    # =====================================================================================
    # 7. 로깅 및 앱 반환
    # =====================================================================================
    if not app.debug:
        logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]')

    logging.info(f"Flask app created for '{config_name}' environment.")

    return app

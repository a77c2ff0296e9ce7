# snapgram/core/config.py

import os # 환경 변수를 읽기 위해 사용합니다.

class Config:
    """모든 환경 설정의 기반이 되는 공통 설정 클래스입니다."""
    # Firebase Storage 버킷 이름. 게시물 이미지가 이 버킷에 업로드됩니다.
    FIREBASE_STORAGE_BUCKET = os.getenv('FIREBASE_STORAGE_BUCKET')
    # 이메일/비밀번호 로그인(Identity Toolkit REST API)에 사용하는 웹 API 키입니다.
    FIREBASE_WEB_API_KEY = os.getenv('FIREBASE_WEB_API_KEY')

    # Firestore 컬렉션 이름
    USERS_COLLECTION = os.getenv('USERS_COLLECTION', 'users')
    POSTS_COLLECTION = os.getenv('POSTS_COLLECTION', 'posts')
    SAVES_COLLECTION = os.getenv('SAVES_COLLECTION', 'saves')

    # 최근 게시물 목록은 최대 20개, 무한 스크롤 피드는 한 페이지에 9개씩 가져옵니다.
    RECENT_POSTS_LIMIT = int(os.getenv('RECENT_POSTS_LIMIT', 20))
    INFINITE_PAGE_SIZE = int(os.getenv('INFINITE_PAGE_SIZE', 9))

    # 구독자가 없는 캐시 항목을 보관하는 시간(초). 0 이하이면 만료시키지 않습니다.
    QUERY_GC_TIME = int(os.getenv('QUERY_GC_TIME', 300))
    # 원격 호출 하나를 기다리는 최대 시간(초)
    REMOTE_TIMEOUT = float(os.getenv('REMOTE_TIMEOUT', 30))
    # 요청 스레드가 쿼리 결과를 기다리는 최대 시간(초). 여러 원격 호출을 거치는 쓰기를 고려해 넉넉하게 둡니다.
    REQUEST_TIMEOUT = float(os.getenv('REQUEST_TIMEOUT', 120))

    # 가입 시 프로필 이미지로 사용할 이니셜 아바타 URL 템플릿
    AVATAR_URL_TEMPLATE = os.getenv('AVATAR_URL_TEMPLATE', 'https://ui-avatars.com/api/?name={name}&background=random')

class DevelopmentConfig(Config):
    """개발 환경을 위한 설정 클래스입니다."""
    DEBUG = True
    # 개발용 Firebase 프로젝트의 서비스 계정 키 파일 경로
    FIREBASE_CREDENTIALS_PATH = os.getenv('DEV_FIREBASE_CREDENTIALS_PATH')

class TestingConfig(Config):
    """테스트 환경을 위한 설정 클래스입니다."""
    TESTING = True
    DEBUG = False
    FIREBASE_CREDENTIALS_PATH = os.getenv('TEST_FIREBASE_CREDENTIALS_PATH')
    FIREBASE_WEB_API_KEY = 'test-api-key'
    # 테스트에서는 시간 경과에 따른 캐시 만료를 끕니다.
    QUERY_GC_TIME = 0

# SNAPGRAM_ENV 값에 따라 create_app에서 설정 클래스를 선택합니다.
config_by_name = dict(
    development=DevelopmentConfig,
    testing=TestingConfig
)

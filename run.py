# run.py
import os
from dotenv import load_dotenv
from snapgram import create_app

basedir = os.path.abspath(os.path.dirname(__file__))
# 이 파일과 같은 디렉터리의 '.env' 파일을 로드합니다.
load_dotenv(dotenv_path=os.path.join(basedir, '.env'))

app = create_app()

if __name__ == '__main__':
    host = os.getenv('FLASK_RUN_HOST', '127.0.0.1')
    port = int(os.getenv('FLASK_RUN_PORT', 5000))
    debug = app.config.get('DEBUG', False)
    # 쿼리 캐시는 프로세스 하나에만 존재하므로 리로더를 끕니다.
    app.run(host=host, port=port, debug=debug, use_reloader=False)

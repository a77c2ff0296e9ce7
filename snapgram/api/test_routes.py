# snapgram/api/test_routes.py
"""
API 라우트 테스트 (폼 검증과 실패 유형별 HTTP 응답)

원격 호출 서비스는 mock으로 주입하고, 쿼리 캐시와 이벤트 루프는 실제 객체를 사용합니다.
사용법: python -m pytest snapgram/api/test_routes.py -v
"""

import asyncio
import io
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from firebase_admin import auth as firebase_auth

from snapgram import create_app
from snapgram.api.auth.services import AuthService
from snapgram.core.errors import Conflict, NotAuthenticated, NotFound, RemoteUnavailable
from snapgram.models.post import PostPage, PostRecord
from snapgram.models.user import Session, UserRecord
from snapgram.query.keys import current_user_key

AUTH_HEADER = {'Authorization': 'Bearer id-token'}


def make_user():
    return UserRecord(id="user1", account_id="acct1", name="Kim", email="kim@example.com", username="kim")


def make_post(post_id="post1", creator_id="user1"):
    return PostRecord(id=post_id, creator_id=creator_id, caption="Sunset at the beach",
                      image_url="https://img", image_id="posts/img.jpg", tags=["sea"])


@pytest.fixture
def auth_service():
    auth = MagicMock()
    auth.restore_session = AsyncMock(return_value=Session(account_id="acct1", id_token="id-token"))
    auth.get_current_user = AsyncMock(return_value=make_user())
    return auth


@pytest.fixture
def post_service():
    return MagicMock()


@pytest.fixture
def app(auth_service, post_service):
    app = create_app('testing', services={'auth': auth_service, 'posts': post_service})
    yield app
    app.services['runner'].stop()


@pytest.fixture
def client(app):
    return app.test_client()


# --- 인증 ---
def test_signup_validation_error(client, auth_service):
    auth_service.create_user_account = AsyncMock()

    response = client.post('/api/auth/signup', json={'name': "K", 'username': "kim", 'email': "bad", 'password': "short"})

    assert response.status_code == 400
    body = response.get_json()
    assert body['error_code'] == "VALIDATION_ERROR"
    assert set(body['details']) == {'name', 'email', 'password'}
    auth_service.create_user_account.assert_not_awaited()


def test_signup_success(client, auth_service):
    auth_service.create_user_account = AsyncMock(return_value=make_user())

    response = client.post('/api/auth/signup', json={
        'name': "Kim", 'username': "kim", 'email': "kim@example.com", 'password': "password1"
    })

    assert response.status_code == 201
    assert response.get_json()['user']['username'] == "kim"
    assert 'password' not in response.get_json()['user']


def test_signin_conflict_maps_to_409(client, auth_service):
    auth_service.sign_in_account = AsyncMock(side_effect=Conflict("이미 활성화된 세션이 있습니다.", operation="sign_in_account"))

    response = client.post('/api/auth/signin', json={'email': "kim@example.com", 'password': "password1"})

    assert response.status_code == 409
    assert response.get_json()['error_code'] == "CONFLICT"


def test_me_without_token_is_401(client, auth_service):
    response = client.get('/api/auth/me')

    assert response.status_code == 401
    assert response.get_json()['error_code'] == "NOT_AUTHENTICATED"
    auth_service.get_current_user.assert_not_awaited()


def test_me_with_invalid_token_is_401(client, auth_service):
    auth_service.restore_session = AsyncMock(side_effect=NotAuthenticated("잘못된 토큰", operation="restore_session"))

    response = client.get('/api/auth/me', headers=AUTH_HEADER)
    assert response.status_code == 401


def test_me_returns_current_user(client):
    response = client.get('/api/auth/me', headers=AUTH_HEADER)

    assert response.status_code == 200
    assert response.get_json()['id'] == "user1"


# --- 게시물 조회 ---
def test_missing_post_is_404(client, post_service):
    post_service.get_post_by_id = AsyncMock(side_effect=NotFound("게시물을 찾을 수 없습니다.", operation="get_post_by_id"))

    response = client.get('/api/posts/missing')

    assert response.status_code == 404
    assert response.get_json()['error_code'] == "NOT_FOUND"


def test_remote_failure_is_503(client, post_service):
    post_service.get_recent_posts = AsyncMock(side_effect=RemoteUnavailable("firestore down", operation="get_recent_posts"))

    response = client.get('/api/posts/recent')

    assert response.status_code == 503
    assert response.get_json()['error_code'] == "REMOTE_UNAVAILABLE"


def test_recent_posts_are_cached_between_requests(client, post_service):
    post_service.get_recent_posts = AsyncMock(return_value=PostPage(documents=[make_post()]))

    first = client.get('/api/posts/recent')
    second = client.get('/api/posts/recent')

    assert first.get_json() == second.get_json()
    assert first.get_json()['posts'][0]['id'] == "post1"
    post_service.get_recent_posts.assert_awaited_once()


def test_search_without_term_returns_empty_list(client, post_service):
    post_service.search_posts = AsyncMock()

    response = client.get('/api/posts/search?q=')

    assert response.status_code == 200
    assert response.get_json() == {"posts": []}
    post_service.search_posts.assert_not_awaited()


# --- 게시물 작성 / 삭제 ---
def test_create_post_validation_error(client, post_service):
    post_service.create_post = AsyncMock()

    response = client.post('/api/posts', headers=AUTH_HEADER, content_type='multipart/form-data',
                           data={'caption': "hi", 'location': "", 'file': (io.BytesIO(b"img"), "photo.jpg")})

    assert response.status_code == 400
    assert set(response.get_json()['details']) == {'caption', 'location'}
    post_service.create_post.assert_not_awaited()


def test_create_post_requires_file(client, post_service):
    post_service.create_post = AsyncMock()

    response = client.post('/api/posts', headers=AUTH_HEADER, content_type='multipart/form-data',
                           data={'caption': "Sunset at the beach", 'location': "Busan"})

    assert response.status_code == 400
    assert 'file' in response.get_json()['details']


def test_create_post_success(client, post_service):
    post_service.create_post = AsyncMock(return_value=make_post())

    response = client.post('/api/posts', headers=AUTH_HEADER, content_type='multipart/form-data',
                           data={'caption': "Sunset at the beach", 'location': "Busan", 'tags': "sea, sky",
                                 'file': (io.BytesIO(b"img"), "photo.jpg")})

    assert response.status_code == 201
    draft = post_service.create_post.await_args[0][0]
    assert draft.user_id == "user1"
    assert draft.tags == "sea, sky"
    assert draft.file.content == b"img"


def test_delete_post_by_other_user_is_forbidden(client, post_service):
    post_service.get_post_by_id = AsyncMock(return_value=make_post(creator_id="someone-else"))
    post_service.delete_post = AsyncMock()

    response = client.delete('/api/posts/post1', headers=AUTH_HEADER)

    assert response.status_code == 403
    post_service.delete_post.assert_not_awaited()


def test_delete_post_uses_stored_image_id(client, post_service):
    post_service.get_post_by_id = AsyncMock(return_value=make_post())
    post_service.delete_post = AsyncMock(return_value={"status": "ok"})

    response = client.delete('/api/posts/post1', headers=AUTH_HEADER)

    assert response.status_code == 200
    post_service.delete_post.assert_awaited_once_with("post1", "posts/img.jpg")


def test_like_post_requires_likes_list(client):
    response = client.post('/api/posts/post1/like', headers=AUTH_HEADER, json={})
    assert response.status_code == 400


def test_slow_request_is_503(app, client, post_service):
    async def slow_recent_posts():
        await asyncio.sleep(0.5)
        return PostPage()

    post_service.get_recent_posts = AsyncMock(side_effect=slow_recent_posts)
    app.config['REQUEST_TIMEOUT'] = 0.05

    response = client.get('/api/posts/recent')

    assert response.status_code == 503
    assert response.get_json()['error_code'] == "REMOTE_UNAVAILABLE"


# --- 피드 ---
def test_feed_reports_next_page(client, post_service):
    post_service.get_infinite_posts = AsyncMock(side_effect=[PostPage(documents=[make_post()]), PostPage()])

    first = client.get('/api/posts/feed').get_json()
    assert len(first['pages']) == 1
    assert first['has_next_page'] is True

    second = client.get('/api/posts/feed/next').get_json()
    assert len(second['pages']) == 2
    assert second['has_next_page'] is False
    assert [call.args[0] for call in post_service.get_infinite_posts.await_args_list] == [None, "post1"]


# --- 로그아웃 ---
def test_token_is_rejected_after_signout(post_service):
    db = MagicMock()
    user_doc = MagicMock(id="user1")
    user_doc.to_dict.return_value = {'accountId': "acct1", 'name': "Kim", 'email': "kim@example.com", 'username': "kim"}
    db.collection.return_value.where.return_value.limit.return_value.stream.return_value = [user_doc]
    auth = AuthService(db=db, config={'FIREBASE_WEB_API_KEY': 'test-api-key'})
    app = create_app('testing', services={'auth': auth, 'posts': post_service})

    revoked = set()

    def verify_id_token(id_token, check_revoked=False):
        if check_revoked and id_token in revoked:
            raise firebase_auth.RevokedIdTokenError("The Firebase ID token has been revoked.")
        return {'uid': "acct1"}

    sign_in_response = MagicMock(ok=True, status_code=200)
    sign_in_response.json.return_value = {'localId': "acct1", 'idToken': "id-token", 'refreshToken': "refresh", 'expiresIn': "3600"}

    try:
        with patch('snapgram.api.auth.services.firebase_auth') as mock_auth, \
                patch('snapgram.api.auth.services.requests.post', return_value=sign_in_response):
            mock_auth.verify_id_token.side_effect = verify_id_token
            mock_auth.get_user.return_value = MagicMock(uid="acct1", display_name="Kim", email="kim@example.com")
            mock_auth.revoke_refresh_tokens.side_effect = lambda uid: revoked.add("id-token")
            client = app.test_client()

            signin = client.post('/api/auth/signin', json={'email': "kim@example.com", 'password': "password1"})
            assert signin.status_code == 200
            headers = {'Authorization': f"Bearer {signin.get_json()['session']['id_token']}"}

            assert client.get('/api/auth/me', headers=headers).status_code == 200
            assert client.post('/api/auth/signout', headers=headers).status_code == 200

            me = client.get('/api/auth/me', headers=headers)
            assert me.status_code == 401
            assert me.get_json()['error_code'] == "NOT_AUTHENTICATED"
            assert app.services['query_client'].get_query_state(current_user_key("acct1")) is None
    finally:
        app.services['runner'].stop()

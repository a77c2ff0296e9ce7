# snapgram/api/auth/services.py
import logging
from dataclasses import asdict
from typing import Any, Dict, Optional
from urllib.parse import quote

import requests
from firebase_admin import firestore, auth as firebase_auth
from google.cloud.firestore_v1.base_query import FieldFilter

from snapgram.api.auth.schemas import SignupSchema, SigninSchema
from snapgram.core.errors import (
    SnapgramError, ValidationError, NotAuthenticated, NotFound, Conflict, RemoteUnavailable
)
from snapgram.models.user import NewUser, AccountRecord, UserRecord, Session, ClientContext
from snapgram.services.remote import run_remote, run_compensation
from snapgram.utils.datetime_utils import DateTimeUtils

SIGN_IN_URL = "https://identitytoolkit.googleapis.com/v1/accounts:signInWithPassword"

# Identity Toolkit 오류 메시지 -> 실패 유형
_SIGN_IN_ERRORS = {
    "INVALID_LOGIN_CREDENTIALS": NotAuthenticated,
    "EMAIL_NOT_FOUND": NotAuthenticated,
    "INVALID_PASSWORD": NotAuthenticated,
    "USER_DISABLED": NotAuthenticated,
    "INVALID_EMAIL": ValidationError,
    "MISSING_PASSWORD": ValidationError,
}

class AuthService:
    """
    계정/세션 관련 원격 호출을 담당하는 서비스 클래스.
    상태를 갖지 않으며, 인증 상태는 호출마다 ClientContext로 명시적으로 전달받습니다.
    """
    def __init__(self, db=None, config: Optional[Dict[str, Any]] = None):
        config = config or {}
        self.db = db or firestore.client()
        self.users_ref = self.db.collection(config.get('USERS_COLLECTION', 'users'))
        self.api_key = config.get('FIREBASE_WEB_API_KEY')
        self.avatar_url_template = config.get('AVATAR_URL_TEMPLATE', 'https://ui-avatars.com/api/?name={name}')
        self.timeout = config.get('REMOTE_TIMEOUT')

    # --- 회원가입 ---
    async def create_user_account(self, new_user: NewUser) -> UserRecord:
        """
        Firebase Auth 계정을 만들고 'users' 컬렉션에 사용자 문서를 저장합니다.
        문서 저장이 실패하면 방금 만든 계정을 삭제하여 계정-문서 1:1 관계를 지킵니다.
        """
        errors = SignupSchema().validate(asdict(new_user))
        if errors:
            raise ValidationError("회원가입 입력값이 올바르지 않습니다.", operation="create_user_account", details=errors)

        account = await run_remote(
            "create_user_account", firebase_auth.create_user,
            email=new_user.email, password=new_user.password, display_name=new_user.name,
            timeout=self.timeout
        )

        try:
            return await self.save_user_to_db(
                account_id=account.uid,
                name=account.display_name or new_user.name,
                email=account.email or new_user.email,
                username=new_user.username,
                image_url=self.get_initials_avatar(new_user.name),
            )
        except SnapgramError:
            await run_compensation("create_user_account.delete_account", self._delete_account, account.uid)
            raise

    def get_initials_avatar(self, name: str) -> str:
        """표시 이름으로 이니셜 아바타 URL을 만듭니다."""
        return self.avatar_url_template.format(name=quote(name or ''))

    async def save_user_to_db(self, account_id: str, name: str, email: str, username: str, image_url: Optional[str]) -> UserRecord:
        """사용자 문서를 'users' 컬렉션에 저장합니다."""
        doc_ref = self.users_ref.document()
        data = {
            'accountId': account_id,
            'name': name,
            'email': email,
            'username': username,
            'imageUrl': image_url,
            'createdAt': DateTimeUtils.now(),
        }
        await run_remote("save_user_to_db", doc_ref.set, data, timeout=self.timeout)
        logging.info(f"사용자 문서 저장 완료 (accountId: {account_id}, doc: {doc_ref.id})")
        return UserRecord.from_document(doc_ref.id, data)

    async def _delete_account(self, account_id: str):
        await run_remote("delete_account", firebase_auth.delete_user, account_id, timeout=self.timeout)

    # --- 로그인 / 로그아웃 ---
    async def sign_in_account(self, ctx: ClientContext, email: str, password: str) -> Session:
        """
        이메일/비밀번호로 세션을 만들고 컨텍스트에 저장합니다.
        이미 활성 세션이 있는 컨텍스트에서는 새 세션을 만들 수 없습니다.
        """
        errors = SigninSchema().validate({'email': email, 'password': password})
        if errors:
            raise ValidationError("로그인 입력값이 올바르지 않습니다.", operation="sign_in_account", details=errors)
        if ctx.session is not None:
            raise Conflict("이미 활성화된 세션이 있습니다. 먼저 로그아웃해주세요.", operation="sign_in_account")
        if not self.api_key:
            raise RemoteUnavailable("FIREBASE_WEB_API_KEY가 설정되지 않았습니다.", operation="sign_in_account")

        payload = await run_remote("sign_in_account", self._sign_in_with_password, email, password, timeout=self.timeout)

        session = Session(
            account_id=payload['localId'],
            id_token=payload['idToken'],
            refresh_token=payload.get('refreshToken'),
            expires_at=DateTimeUtils.expires_after(payload.get('expiresIn')),
        )
        ctx.session = session
        logging.info(f"로그인 성공 (accountId: {session.account_id})")
        return session

    def _sign_in_with_password(self, email: str, password: str) -> Dict[str, Any]:
        """Identity Toolkit REST API 호출. 워커 스레드에서 실행됩니다."""
        response = requests.post(
            SIGN_IN_URL,
            params={'key': self.api_key},
            json={'email': email, 'password': password, 'returnSecureToken': True},
            timeout=self.timeout,
        )
        if response.ok:
            return response.json()

        try:
            reason = response.json().get('error', {}).get('message', '')
        except ValueError:
            reason = response.text
        code = reason.split(' ')[0] if reason else ''
        error_class = _SIGN_IN_ERRORS.get(code)
        if error_class:
            raise error_class(f"로그인 실패: {code}", operation="sign_in_account")
        raise RemoteUnavailable(f"로그인 요청 실패 (HTTP {response.status_code}): {reason}", operation="sign_in_account")

    async def sign_out_account(self, ctx: ClientContext) -> Dict[str, str]:
        """현재 세션의 리프레시 토큰을 폐기하고 컨텍스트에서 세션을 제거합니다."""
        if ctx.session is None:
            raise NotAuthenticated("로그아웃할 세션이 없습니다.", operation="sign_out_account")

        account_id = ctx.session.account_id
        await run_remote("sign_out_account", firebase_auth.revoke_refresh_tokens, account_id, timeout=self.timeout)
        ctx.session = None
        logging.info(f"로그아웃 처리 완료 (accountId: {account_id})")
        return {"status": "ok"}

    async def restore_session(self, id_token: str) -> Session:
        """
        클라이언트가 보관하던 ID 토큰으로 세션을 복원합니다.
        토큰 서명, 만료, 로그아웃(리프레시 토큰 폐기) 여부를 검증한 뒤에만 계정 ID를 신뢰합니다.
        """
        if not id_token:
            raise NotAuthenticated("ID 토큰이 비어 있습니다.", operation="restore_session")

        claims = await run_remote("restore_session", firebase_auth.verify_id_token, id_token,
                                  check_revoked=True, timeout=self.timeout)
        return Session(account_id=claims['uid'], id_token=id_token, expires_at=DateTimeUtils.from_epoch(claims.get('exp')))

    # --- 현재 사용자 ---
    async def get_account(self, ctx: ClientContext) -> AccountRecord:
        """세션의 ID 토큰을 검증하고 해당 계정을 조회합니다."""
        if ctx is None or ctx.session is None:
            raise NotAuthenticated("활성 세션이 없습니다. 로그인이 필요합니다.", operation="get_account")

        id_token = ctx.session.id_token

        def _load_account():
            claims = firebase_auth.verify_id_token(id_token, check_revoked=True)
            return firebase_auth.get_user(claims['uid'])

        try:
            user = await run_remote("get_account", _load_account, timeout=self.timeout)
        except NotFound as e:
            raise NotAuthenticated("세션에 해당하는 계정이 없습니다.", operation="get_account") from e
        return AccountRecord(id=user.uid, name=user.display_name, email=user.email)

    async def get_current_user(self, ctx: ClientContext) -> UserRecord:
        """
        활성 계정을 조회한 뒤, accountId가 일치하는 사용자 문서를 찾습니다.
        :raises NotAuthenticated: 계정이 없는 경우
        :raises NotFound: 일치하는 사용자 문서가 없는 경우
        """
        account = await self.get_account(ctx)

        def _find_user():
            query = self.users_ref.where(filter=FieldFilter('accountId', '==', account.id)).limit(1)
            return list(query.stream())

        docs = await run_remote("get_current_user", _find_user, timeout=self.timeout)
        if not docs:
            raise NotFound(f"계정({account.id})에 해당하는 사용자 문서가 없습니다.", operation="get_current_user")
        return UserRecord.from_document(docs[0].id, docs[0].to_dict())

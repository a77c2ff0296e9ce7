# snapgram/api/auth/routes.py

import logging
from flask import Blueprint, request, jsonify, current_app
from marshmallow import ValidationError

from snapgram.api.auth.schemas import SignupSchema, SigninSchema, UserResponseSchema, SessionResponseSchema
from snapgram.api.context import run_query, client_context
from snapgram.models.user import NewUser

auth_bp = Blueprint('auth_bp', __name__)

@auth_bp.route('/signup', methods=['POST'])
def signup():
    """회원가입. 폼 검증을 통과해야만 계정 생성을 요청합니다."""
    queries = current_app.services['queries']
    try:
        data = SignupSchema().load(request.get_json(silent=True) or {})
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400

    new_user = run_query(queries.create_user_account(NewUser(**data)))
    logging.info(f"회원가입 완료 (username: {new_user.username})")
    return jsonify({
        "message": "회원가입이 완료되었습니다.",
        "user": UserResponseSchema().dump(new_user)
    }), 201


@auth_bp.route('/signin', methods=['POST'])
def signin():
    """로그인. 성공 시 클라이언트가 보관할 세션 토큰을 돌려줍니다."""
    queries = current_app.services['queries']
    try:
        data = SigninSchema().load(request.get_json(silent=True) or {})
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400

    ctx = client_context()
    session = run_query(queries.sign_in_account(ctx, data['email'], data['password']))
    return jsonify({
        "message": "로그인되었습니다.",
        "session": SessionResponseSchema().dump(session)
    }), 200


@auth_bp.route('/signout', methods=['POST'])
def signout():
    """로그아웃. 현재 세션의 리프레시 토큰을 폐기합니다."""
    queries = current_app.services['queries']
    ctx = client_context()
    run_query(queries.sign_out_account(ctx))
    return jsonify({"message": "로그아웃되었습니다."}), 200


@auth_bp.route('/me', methods=['GET'])
def get_me():
    """현재 로그인된 사용자 정보를 조회합니다."""
    queries = current_app.services['queries']
    ctx = client_context()
    user = run_query(queries.get_current_user(ctx))
    return jsonify(UserResponseSchema().dump(user)), 200

# snapgram/api/auth/schemas.py
from marshmallow import Schema, fields, validate

class SignupSchema(Schema):
    """회원가입 폼의 유효성을 검사합니다. 원격 호출 전에 잘못된 입력을 걸러냅니다."""
    name = fields.Str(required=True, validate=validate.Length(min=2, error="이름은 2자 이상이어야 합니다."))
    username = fields.Str(required=True, validate=validate.Length(min=2, error="사용자 이름은 2자 이상이어야 합니다."))
    email = fields.Email(required=True, error_messages={"invalid": "올바른 이메일 형식이 아닙니다."})
    password = fields.Str(required=True, load_only=True,
                          validate=validate.Length(min=8, error="비밀번호는 8자 이상이어야 합니다."))

class SigninSchema(Schema):
    """로그인 폼의 유효성을 검사합니다."""
    email = fields.Email(required=True, error_messages={"invalid": "올바른 이메일 형식이 아닙니다."})
    password = fields.Str(required=True, load_only=True,
                          validate=validate.Length(min=1, error="비밀번호를 입력해주세요."))

class UserResponseSchema(Schema):
    """사용자 정보 응답 형식."""
    id = fields.Str(required=True)
    account_id = fields.Str(required=True)
    name = fields.Str(required=True)
    email = fields.Email(required=True)
    username = fields.Str(required=True)
    image_url = fields.Str(allow_none=True)
    created_at = fields.DateTime(allow_none=True)

class SessionResponseSchema(Schema):
    """로그인 성공 시 클라이언트에 돌려주는 세션 정보."""
    account_id = fields.Str(required=True)
    id_token = fields.Str(required=True)
    refresh_token = fields.Str(allow_none=True)
    expires_at = fields.DateTime(allow_none=True)

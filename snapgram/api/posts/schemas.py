# snapgram/api/posts/schemas.py
from marshmallow import Schema, fields, validate

# --- API 요청 스키마 ---

class PostFormSchema(Schema):
    """
    POST /api/posts, PATCH /api/posts/{post_id} 폼 필드의 유효성을 검사합니다.
    이미지 파일은 multipart의 'file' 필드로 따로 받습니다.
    """
    caption = fields.Str(required=True, validate=validate.Length(min=5, max=2200, error="캡션은 5~2200자 사이여야 합니다."))
    location = fields.Str(required=True, validate=validate.Length(min=1, max=100, error="위치는 1~100자 사이여야 합니다."))
    tags = fields.Str(load_default="")

class LikeSchema(Schema):
    """POST /api/posts/{post_id}/like 요청 본문. 좋아요를 누른 user id 전체 목록입니다."""
    likes = fields.List(fields.Str(), required=True)

# --- API 응답 스키마 ---

class PostResponseSchema(Schema):
    """게시물 정보 응답을 위한 최종 JSON 형식을 정의합니다."""
    id = fields.Str(required=True)
    creator_id = fields.Str(required=True)
    caption = fields.Str(required=True)
    image_url = fields.Str(allow_none=True)
    image_id = fields.Str(allow_none=True)
    location = fields.Str(allow_none=True)
    tags = fields.List(fields.Str())
    likes = fields.List(fields.Str())
    created_at = fields.DateTime(allow_none=True)
    updated_at = fields.DateTime(allow_none=True)

class SaveResponseSchema(Schema):
    """저장(북마크) 기록 응답 형식."""
    id = fields.Str(required=True)
    user_id = fields.Str(required=True)
    post_id = fields.Str(required=True)
    created_at = fields.DateTime(allow_none=True)

# snapgram/api/posts/routes.py

import logging
from typing import Optional
from flask import Blueprint, request, jsonify, current_app
from marshmallow import ValidationError

from snapgram.api.context import run_query, client_context
from snapgram.api.posts.schemas import PostFormSchema, LikeSchema, PostResponseSchema, SaveResponseSchema
from snapgram.models.post import ImageFile, NewPost, UpdatePost

posts_bp = Blueprint('posts_bp', __name__)

def _image_from_request() -> Optional[ImageFile]:
    """multipart 'file' 필드에서 이미지를 꺼냅니다. 없으면 None."""
    upload = request.files.get('file')
    if upload is None or not upload.filename:
        return None
    return ImageFile(
        filename=upload.filename,
        content=upload.read(),
        content_type=upload.mimetype or "application/octet-stream"
    )

async def _load_feed(queries, next_page: bool = False):
    """피드와 다음 페이지 존재 여부를 쿼리 루프 안에서 함께 읽습니다."""
    feed = await (queries.get_posts_next_page() if next_page else queries.get_posts())
    return feed, queries.has_more_posts()

def _page_payload(feed, has_next_page: bool) -> dict:
    return {
        "pages": [PostResponseSchema(many=True).dump(page.documents) for page in feed.pages],
        "has_next_page": has_next_page
    }

def _forbidden():
    return jsonify({"error_code": "FORBIDDEN", "message": "게시물 작성자만 수정/삭제할 수 있습니다."}), 403


@posts_bp.route('/recent', methods=['GET'])
def get_recent_posts():
    """최근 게시물 목록을 조회합니다."""
    queries = current_app.services['queries']
    page = run_query(queries.get_recent_posts())
    return jsonify({"posts": PostResponseSchema(many=True).dump(page.documents)}), 200


@posts_bp.route('/feed', methods=['GET'])
def get_feed():
    """무한 스크롤 피드에서 지금까지 불러온 페이지를 조회합니다."""
    queries = current_app.services['queries']
    feed, has_next_page = run_query(_load_feed(queries))
    return jsonify(_page_payload(feed, has_next_page)), 200


@posts_bp.route('/feed/next', methods=['GET'])
def get_feed_next_page():
    """무한 스크롤 피드의 다음 페이지를 불러옵니다."""
    queries = current_app.services['queries']
    feed, has_next_page = run_query(_load_feed(queries, next_page=True))
    return jsonify(_page_payload(feed, has_next_page)), 200


@posts_bp.route('/search', methods=['GET'])
def search_posts():
    """캡션으로 게시물을 검색합니다. 검색어가 없으면 빈 목록을 돌려줍니다."""
    queries = current_app.services['queries']
    search_term = request.args.get('q', '', type=str)
    page = run_query(queries.search_posts(search_term))
    documents = page.documents if page else []
    return jsonify({"posts": PostResponseSchema(many=True).dump(documents)}), 200


@posts_bp.route('/<string:post_id>', methods=['GET'])
def get_post(post_id: str):
    queries = current_app.services['queries']
    post = run_query(queries.get_post_by_id(post_id))
    return jsonify(PostResponseSchema().dump(post)), 200


@posts_bp.route('', methods=['POST'])
def create_post():
    """새 게시물을 작성합니다. (multipart: file, caption, location, tags)"""
    queries = current_app.services['queries']
    try:
        data = PostFormSchema().load(request.form.to_dict())
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400

    image = _image_from_request()
    if image is None:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": {"file": ["이미지 파일이 필요합니다."]}}), 400

    ctx = client_context()
    user = run_query(queries.get_current_user(ctx))
    post = run_query(queries.create_post(NewPost(user_id=user.id, file=image, **data)))
    logging.info(f"게시물 작성 요청 처리 완료 (post_id: {post.id})")
    return jsonify({"message": "게시물이 등록되었습니다.", "post": PostResponseSchema().dump(post)}), 201


@posts_bp.route('/<string:post_id>', methods=['PATCH'])
def update_post(post_id: str):
    """게시물을 수정합니다. 새 이미지 파일은 선택 사항입니다."""
    queries = current_app.services['queries']
    try:
        data = PostFormSchema().load(request.form.to_dict())
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400

    ctx = client_context()
    user = run_query(queries.get_current_user(ctx))
    existing = run_query(queries.get_post_by_id(post_id))
    if existing.creator_id != user.id:
        return _forbidden()

    draft = UpdatePost(
        post_id=post_id,
        image_url=existing.image_url,
        image_id=existing.image_id,
        file=_image_from_request(),
        **data
    )
    post = run_query(queries.update_post(draft))
    return jsonify({"message": "게시물이 수정되었습니다.", "post": PostResponseSchema().dump(post)}), 200


@posts_bp.route('/<string:post_id>', methods=['DELETE'])
def delete_post(post_id: str):
    """게시물과 연결된 이미지를 삭제합니다. (작성자 본인만 가능)"""
    queries = current_app.services['queries']
    ctx = client_context()
    user = run_query(queries.get_current_user(ctx))
    existing = run_query(queries.get_post_by_id(post_id))
    if existing.creator_id != user.id:
        return _forbidden()

    run_query(queries.delete_post(post_id, existing.image_id))
    return jsonify({"message": "게시물이 삭제되었습니다."}), 200


@posts_bp.route('/<string:post_id>/like', methods=['POST'])
def like_post(post_id: str):
    """게시물의 좋아요 목록을 갱신합니다."""
    queries = current_app.services['queries']
    try:
        data = LikeSchema().load(request.get_json(silent=True) or {})
    except ValidationError as err:
        return jsonify({"error_code": "VALIDATION_ERROR", "details": err.messages}), 400

    ctx = client_context()
    run_query(queries.get_current_user(ctx))
    post = run_query(queries.like_post(post_id, data['likes']))
    return jsonify({"message": "좋아요 상태가 변경되었습니다.", "post": PostResponseSchema().dump(post)}), 200


@posts_bp.route('/<string:post_id>/save', methods=['POST'])
def save_post(post_id: str):
    """게시물을 저장(북마크)합니다."""
    queries = current_app.services['queries']
    ctx = client_context()
    user = run_query(queries.get_current_user(ctx))
    saved = run_query(queries.save_post(post_id, user.id))
    return jsonify({"message": "게시물을 저장했습니다.", "save": SaveResponseSchema().dump(saved)}), 201


@posts_bp.route('/saves/<string:save_id>', methods=['DELETE'])
def delete_saved_post(save_id: str):
    """저장 기록을 삭제합니다."""
    queries = current_app.services['queries']
    ctx = client_context()
    run_query(queries.get_current_user(ctx))
    run_query(queries.delete_saved_post(save_id))
    return jsonify({"message": "저장을 취소했습니다."}), 200

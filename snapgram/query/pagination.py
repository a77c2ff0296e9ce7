# snapgram/query/pagination.py
"""
무한 스크롤 피드의 다음 페이지 커서 계산.

N+1번째 페이지의 파라미터는 N번째 페이지 마지막 게시물의 ID입니다.
빈 페이지(또는 페이지 없음)에서는 커서를 만들지 않고 NO_MORE_PAGES를 돌려주어
더 이상 요청하지 않도록 합니다.
"""

from typing import Any, Optional

NO_MORE_PAGES = None

def get_next_page_param(last_page: Any) -> Optional[str]:
    """
    :param last_page: documents 속성을 가진 페이지 (PostPage 등)
    :return: 마지막 문서의 ID, 더 이상 페이지가 없으면 NO_MORE_PAGES
    """
    documents = getattr(last_page, 'documents', None) if last_page is not None else None
    if not documents:
        return NO_MORE_PAGES
    return documents[-1].id

# snapgram/utils/tags.py
import re
from typing import List, Optional

_WHITESPACE = re.compile(r'\s+')

def parse_tags(raw_tags: Optional[str]) -> List[str]:
    """
    쉼표로 구분된 태그 문자열을 태그 목록으로 변환합니다.
    - 모든 공백을 제거한 뒤 쉼표로 나눕니다.
    - 빈 문자열은 태그가 될 수 없습니다.
    - 중복은 처음 나온 순서를 유지하며 제거합니다.

    예) "nature, travel,  food" -> ["nature", "travel", "food"]
    """
    if not raw_tags:
        return []

    tags = []
    for tag in _WHITESPACE.sub('', raw_tags).split(','):
        if tag and tag not in tags:
            tags.append(tag)
    return tags

def caption_keywords(caption: Optional[str]) -> List[str]:
    """캡션 검색용 키워드(소문자 단어) 목록을 만듭니다."""
    if not caption:
        return []
    return sorted({word for word in re.findall(r'\w+', caption.lower())})

# snapgram/utils/test_tags.py
from snapgram.utils.tags import parse_tags, caption_keywords

def test_parse_tags_strips_all_whitespace():
    assert parse_tags("nature, travel,  food") == ["nature", "travel", "food"]
    assert parse_tags(" street  art ,city") == ["streetart", "city"]

def test_parse_tags_empty_input():
    assert parse_tags("") == []
    assert parse_tags(None) == []
    assert parse_tags(" , ,, ") == []

def test_parse_tags_drops_duplicates():
    assert parse_tags("food,food, travel,food") == ["food", "travel"]

def test_caption_keywords():
    assert caption_keywords("Sunset at the Beach, beach day!") == ["at", "beach", "day", "sunset", "the"]
    assert caption_keywords(None) == []

from core.search import filter_bookmarks, normalize_query
from tests.factories import entry, tag

WORK = tag("t-work", "work")
READ = tag("t-read", "read-later")

ENTRIES = [
    entry("b1", "Python Docs", "https://docs.python.org", (WORK,)),
    entry("b2", "Cooking blog", "https://food.example.com/PYTHON-snake-recipes", (READ,)),
    entry("b3", "Release notes", "https://example.org/notes", (READ, WORK)),
]


def test_empty_filter_returns_every_entry_in_order():
    result = filter_bookmarks(ENTRIES)
    assert [e.id for e in result] == ["b1", "b2", "b3"]
    assert result is not ENTRIES


def test_blank_query_is_no_filter():
    assert [e.id for e in filter_bookmarks(ENTRIES, "   ")] == ["b1", "b2", "b3"]


def test_query_matches_title_or_url_case_insensitively():
    assert [e.id for e in filter_bookmarks(ENTRIES, "python")] == ["b1", "b2"]
    assert [e.id for e in filter_bookmarks(ENTRIES, "EXAMPLE.ORG")] == ["b3"]


def test_query_is_matched_untrimmed():
    assert filter_bookmarks(ENTRIES, "  release ") == []
    assert [e.id for e in filter_bookmarks(ENTRIES, "release ")] == ["b3"]
    assert filter_bookmarks([entry("g1", "GitHub", "https://github.com")], "hub ") == []


def test_tags_are_anded():
    assert [e.id for e in filter_bookmarks(ENTRIES, required_tag_ids=["t-work"])] == ["b1", "b3"]
    assert [e.id for e in filter_bookmarks(ENTRIES, required_tag_ids=["t-work", "t-read"])] == [
        "b3"
    ]


def test_query_and_tags_combine():
    assert [e.id for e in filter_bookmarks(ENTRIES, "python", ["t-read"])] == ["b2"]


def test_unknown_tag_matches_nothing():
    assert filter_bookmarks(ENTRIES, required_tag_ids=["missing"]) == []


def test_normalize_query():
    assert normalize_query(None) == ""
    assert normalize_query("  ") == ""
    assert normalize_query("  MiXeD ") == "  mixed "

from compmatch.normalize import basic_clean, collapse_ws, normalize_title, title_tokens
from compmatch.utils.text_clean import truncate_at_word


def test_basic_clean_trims_whitespace_and_html():
    raw = "   <div>Hello   world</div>\n"
    assert basic_clean(raw) == "Hello world"


def test_basic_clean_handles_none_and_plain_text():
    assert basic_clean(None) == ""
    assert basic_clean("  plain   text ") == "plain text"


def test_title_tokens_drop_punctuation_and_single_chars():
    tokens = title_tokens("Acme X-200 Blender, 5 Speed (Red)!")
    assert tokens == ["acme", "200", "blender", "speed", "red"]


def test_normalize_title_lowercases_and_joins():
    assert normalize_title("  Steel_Hammer  16oz ") == "steel hammer 16oz"


def test_collapse_ws():
    assert collapse_ws("a \n\t b") == "a b"


def test_truncate_at_word_keeps_whole_words():
    text = "alpha beta gamma delta"
    assert truncate_at_word(text, 12) == "alpha beta"
    assert truncate_at_word(text, 100) == text
    # exact boundary
    assert truncate_at_word(text, 10) == "alpha beta"


def test_truncate_at_word_hard_cuts_single_long_word():
    assert truncate_at_word("x" * 30, 10) == "x" * 10

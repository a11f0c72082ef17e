import re

import pytest

from asset_optimizer.utils.content_key import compute_content_key


def test_content_key_is_stable_hex_digest():
    key = compute_content_key("abc123", "logo.png")
    assert key == compute_content_key("abc123", "logo.png")
    assert re.fullmatch(r"[0-9a-f]{64}", key)


def test_same_bytes_with_other_filename_is_other_identity():
    assert compute_content_key("abc123", "logo.png") != compute_content_key("abc123", "logo-copy.png")
    assert compute_content_key("abc123", "logo.png") != compute_content_key("abc124", "logo.png")


def test_separator_prevents_ambiguous_concatenation():
    assert compute_content_key("ab", "c.png") != compute_content_key("abc", ".png")


def test_empty_sha1_rejected():
    with pytest.raises(ValueError):
        compute_content_key("", "logo.png")

"""Tests for destination path encoding."""
from tree_uploader.paths import decode_path, encode_path, join_url, split_path


class TestEncodePath:
    def test_segments_round_trip(self):
        encoded = encode_path(["a b", "c/d"])
        assert encoded == "a%20b/c%2Fd"
        assert decode_path(encoded) == ("a b", "c/d")

    def test_slash_only_between_segments(self):
        encoded = encode_path(["x/y/z", "w"])
        assert encoded.count("/") == 1

    def test_drops_empty_segments(self):
        assert encode_path(["", "photos", "", "img.png"]) == "photos/img.png"

    def test_matches_browser_component_encoding(self):
        assert encode_path(["it's (1)!.txt"]) == "it's%20(1)!.txt"
        assert encode_path(["100%"]) == "100%25"
        assert encode_path(["naïve.txt"]) == "na%C3%AFve.txt"

    def test_encoded_input_is_encoded_again(self):
        # callers hand in raw segments; an already encoded name is just a name
        assert encode_path(["a%20b"]) == "a%2520b"


class TestSplitPath:
    def test_root_relative(self):
        assert split_path("/photos/2020/img.png") == ("photos", "2020", "img.png")

    def test_trailing_slash(self):
        assert split_path("photos/") == ("photos",)


class TestJoinUrl:
    def test_adds_separator(self):
        assert join_url("https://host/dir", ["a.txt"]) == "https://host/dir/a.txt"

    def test_keeps_separator(self):
        assert join_url("https://host/dir/", ["a b", "c.txt"]) == "https://host/dir/a%20b/c.txt"

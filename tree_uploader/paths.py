"""Destination path encoding."""
from typing import Iterable, Tuple
from urllib.parse import quote, unquote

# Characters a browser's encodeURIComponent leaves alone besides alphanumerics and "-_.~"
_SEGMENT_SAFE = "!*'()"


def split_path(full_path: str) -> Tuple[str, ...]:
    """Split a "/"-separated relative path, dropping empty segments."""
    return tuple(seg for seg in full_path.split("/") if seg)


def encode_segment(segment: str) -> str:
    return quote(segment, safe=_SEGMENT_SAFE)


def encode_path(segments: Iterable[str]) -> str:
    """
    Percent-encode each segment on its own and join them with "/".

    A "/" inside a segment is escaped as %2F, so it can never be taken for a
    separator. Empty segments are dropped. The input must be raw segments,
    never an already encoded string.
    """
    return "/".join(encode_segment(seg) for seg in segments if seg)


def decode_path(encoded: str) -> Tuple[str, ...]:
    """Segment-wise inverse of encode_path."""
    return tuple(unquote(seg) for seg in encoded.split("/") if seg)


def join_url(base_url: str, segments: Iterable[str]) -> str:
    """Append the encoded relative path to a base URL."""
    if not base_url.endswith("/"):
        base_url += "/"
    return base_url + encode_path(segments)

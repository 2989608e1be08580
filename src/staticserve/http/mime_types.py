"""
=============================================================================
CONTENT TYPE DETECTION
=============================================================================

Two ways to decide the Content-Type of a response:

    ┌────────────────────────────────────────────────────────────────────┐
    │                  CONTENT TYPE RESOLUTION                           │
    ├────────────────────────────────────────────────────────────────────┤
    │                                                                     │
    │  1. BY EXTENSION   "style.css"  →  text/css; charset=utf-8         │
    │                    Cheap, used for files with a known suffix.      │
    │                                                                     │
    │  2. BY CONTENT     b"\\x89PNG\\r\\n\\x1a\\n..."  →  image/png          │
    │                    "Sniffing" the first 512 bytes of the body.     │
    │                    Used for unknown suffixes, and by the gzip      │
    │                    middleware when a handler never set a type.     │
    │                                                                     │
    └────────────────────────────────────────────────────────────────────┘

Sniffing follows the WHATWG MIME Sniffing algorithm (the subset browsers
agree on): leading-whitespace-tolerant HTML/XML markers, exact binary
signatures, and finally a text-vs-binary guess.

=============================================================================
"""

from pathlib import Path
from typing import Optional
import struct


# =============================================================================
# EXTENSION DATABASE
# =============================================================================

MIME_TYPES = {
    # Text
    ".html": "text/html",
    ".htm": "text/html",
    ".css": "text/css",
    ".js": "text/javascript",
    ".mjs": "text/javascript",
    ".json": "application/json",
    ".map": "application/json",
    ".xml": "text/xml",
    ".txt": "text/plain",
    ".md": "text/markdown",
    ".csv": "text/csv",
    ".svg": "image/svg+xml",

    # Images
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".ico": "image/x-icon",
    ".webp": "image/webp",
    ".avif": "image/avif",
    ".bmp": "image/bmp",

    # Fonts
    ".woff": "font/woff",
    ".woff2": "font/woff2",
    ".ttf": "font/ttf",
    ".otf": "font/otf",

    # Audio / video
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".ogg": "audio/ogg",
    ".flac": "audio/flac",
    ".mp4": "video/mp4",
    ".webm": "video/webm",

    # Documents / archives
    ".pdf": "application/pdf",
    ".zip": "application/zip",
    ".gz": "application/gzip",
    ".tar": "application/x-tar",
    ".wasm": "application/wasm",
}

DEFAULT_MIME_TYPE = "application/octet-stream"

TEXT_APPLICATION_TYPES = {
    "application/json",
    "application/xml",
    "application/javascript",
    "image/svg+xml",
}


def get_mime_type(path, default: Optional[str] = DEFAULT_MIME_TYPE) -> Optional[str]:
    """
    MIME type for a file based on its extension.

    Args:
        path: File path or name.
        default: Returned for unknown extensions (None lets the caller
                 fall back to sniffing).

    Examples:
        >>> get_mime_type("/srv/img/logo.PNG")
        'image/png'
        >>> get_mime_type("notes.xyz", default=None) is None
        True
    """
    return MIME_TYPES.get(Path(path).suffix.lower(), default)


def is_text_type(mime_type: str) -> bool:
    """True for text/* and the text-based application types."""
    return mime_type.startswith("text/") or mime_type in TEXT_APPLICATION_TYPES


def get_content_type(path, charset: str = "utf-8") -> Optional[str]:
    """
    Content-Type header value for a file, or None if its extension is unknown.

    Text types carry a charset parameter:

        >>> get_content_type("page.html")
        'text/html; charset=utf-8'
        >>> get_content_type("image.png")
        'image/png'
    """
    mime_type = get_mime_type(path, default=None)
    if mime_type is None:
        return None
    if is_text_type(mime_type):
        return f"{mime_type}; charset={charset}"
    return mime_type


# =============================================================================
# CONTENT SNIFFING
# =============================================================================
#
# Only the first SNIFF_LENGTH bytes are ever examined.
#
# =============================================================================

SNIFF_LENGTH = 512

_WHITESPACE = b"\t\n\x0c\r "

# Tags recognised after optional leading whitespace; case-insensitive and
# must be followed by a space or ">".
_HTML_MARKERS = [
    b"<!DOCTYPE HTML", b"<HTML", b"<HEAD", b"<SCRIPT", b"<IFRAME", b"<H1",
    b"<DIV", b"<FONT", b"<TABLE", b"<A", b"<STYLE", b"<TITLE", b"<B",
    b"<BODY", b"<BR", b"<P", b"<!--",
]

# (prefix, content type): data must start with prefix exactly
_EXACT_SIGNATURES = [
    (b"%PDF-", "application/pdf"),
    (b"%!PS-Adobe-", "application/postscript"),
    (b"\xfe\xff", "text/plain; charset=utf-16be"),
    (b"\xff\xfe", "text/plain; charset=utf-16le"),
    (b"\xef\xbb\xbf", "text/plain; charset=utf-8"),
    (b"\x00\x00\x01\x00", "image/x-icon"),
    (b"\x00\x00\x02\x00", "image/x-icon"),
    (b"BM", "image/bmp"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b".snd", "audio/basic"),
    (b"OggS\x00", "application/ogg"),
    (b"MThd\x00\x00\x00\x06", "audio/midi"),
    (b"ID3", "audio/mpeg"),
    (b"\x1a\x45\xdf\xa3", "video/webm"),
    (b"wOFF", "font/woff"),
    (b"wOF2", "font/woff2"),
    (b"\x1f\x8b\x08", "application/x-gzip"),
    (b"PK\x03\x04", "application/zip"),
    (b"Rar!\x1a\x07\x00", "application/x-rar-compressed"),
    (b"Rar!\x1a\x07\x01\x00", "application/x-rar-compressed"),
    (b"\x00asm", "application/wasm"),
]

# (mask, pattern, content type): data[i] & mask[i] == pattern[i]
_MASKED_SIGNATURES = [
    (b"\xff\xff\xff\xff\x00\x00\x00\x00\xff\xff\xff\xff\xff\xff",
     b"RIFF\x00\x00\x00\x00WEBPVP", "image/webp"),
    (b"\xff\xff\xff\xff\x00\x00\x00\x00\xff\xff\xff\xff",
     b"RIFF\x00\x00\x00\x00WAVE", "audio/wave"),
    (b"\xff\xff\xff\xff\x00\x00\x00\x00\xff\xff\xff\xff",
     b"FORM\x00\x00\x00\x00AIFF", "audio/aiff"),
    (b"\xff\xff\xff\xff\x00\x00\x00\x00\xff\xff\xff\xff",
     b"RIFF\x00\x00\x00\x00AVI ", "video/avi"),
]

# Bytes that never appear in text (WHATWG "binary data byte")
_BINARY_BYTES = frozenset(
    list(range(0x00, 0x09)) + [0x0B] + list(range(0x0E, 0x1B)) + list(range(0x1C, 0x20))
)


def sniff_content_type(data: bytes) -> str:
    """
    Guess a Content-Type from the first bytes of a body.

    Always returns a valid MIME type; "application/octet-stream" when
    nothing matches and the data looks binary.

    Examples:
        >>> sniff_content_type(b"  <html><body>hi</body></html>")
        'text/html; charset=utf-8'
        >>> sniff_content_type(b"just words")
        'text/plain; charset=utf-8'
    """
    data = bytes(data[:SNIFF_LENGTH])

    start = 0
    while start < len(data) and data[start] in _WHITESPACE:
        start += 1
    trimmed = data[start:]

    if _matches_html(trimmed):
        return "text/html; charset=utf-8"
    if trimmed.startswith(b"<?xml"):
        return "text/xml; charset=utf-8"

    for prefix, content_type in _EXACT_SIGNATURES:
        if data.startswith(prefix):
            return content_type

    for mask, pattern, content_type in _MASKED_SIGNATURES:
        if len(data) >= len(pattern) and all(
            data[i] & mask[i] == pattern[i] for i in range(len(pattern))
        ):
            return content_type

    if _matches_mp4(data):
        return "video/mp4"

    if not any(byte in _BINARY_BYTES for byte in data):
        return "text/plain; charset=utf-8"

    return DEFAULT_MIME_TYPE


def _matches_html(data: bytes) -> bool:
    for marker in _HTML_MARKERS:
        if len(data) <= len(marker):
            continue
        if data[:len(marker)].upper() != marker:
            continue
        if data[len(marker)] in b" >":
            return True
    return False


def _matches_mp4(data: bytes) -> bool:
    """ISO base media file: an "ftyp" box listing an mp4 brand."""
    if len(data) < 12:
        return False
    (box_size,) = struct.unpack(">I", data[:4])
    if len(data) < box_size or box_size % 4 != 0:
        return False
    if data[4:8] != b"ftyp":
        return False
    for offset in range(8, box_size, 4):
        if offset == 12:
            continue  # minor version
        if data[offset:offset + 3] == b"mp4":
            return True
    return False

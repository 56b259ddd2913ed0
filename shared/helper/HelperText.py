"""Small text utilities shared by the ingest and conversation services."""

import mimetypes


def estimate_tokens(text: str) -> int:
    """Heuristic token count: max(word count, characters / 4), at least 1 for non-empty text.

    Args:
        text (str): The text to measure.

    Returns:
        int: Estimated token count, 0 for empty or whitespace-only text.
    """
    trimmed = (text or "").strip()
    if not trimmed:
        return 0
    words = len(trimmed.split())
    return max(words, len(trimmed) // 4, 1)


def sanitize_filename(name: str) -> str:
    """Make a filename safe to use as the last segment of a storage key."""
    name = (name or "").strip().replace(" ", "_").replace("/", "_").replace("\\", "_")
    return name or "file"


def snippet(body: str, max_chars: int) -> str:
    """Truncate body to max_chars, appending "..." when cut. max_chars <= 0 disables truncation."""
    if max_chars <= 0 or len(body) <= max_chars:
        return body
    return body[:max_chars].strip() + "..."


def detect_mime_type(filename: str, content: bytes) -> str:
    """Guess a MIME type from the filename, falling back to sniffing the content.

    Args:
        filename (str): Original filename of the upload.
        content (bytes): Raw upload bytes.

    Returns:
        str: The detected MIME type.
    """
    guessed, _ = mimetypes.guess_type(filename)
    if guessed:
        return guessed
    if content.startswith(b"%PDF"):
        return "application/pdf"
    try:
        content[:512].decode("utf-8")
        return "text/plain; charset=utf-8"
    except UnicodeDecodeError:
        return "application/octet-stream"

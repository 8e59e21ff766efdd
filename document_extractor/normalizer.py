"""Text cleanup applied to every structural and OCR extraction result."""

import re

_WHITESPACE_RUN = re.compile(r"\s+")
_DISALLOWED_CHARS = re.compile(r"""[^\w\s.,!?;:()\-'"@#$%&*+=\[\]{}/<>]""")
_EXCESS_NEWLINES = re.compile(r"\n{3,}")
_SPACE_RUN = re.compile(r" {2,}")


def normalize_text(text: str) -> str:
    """Clean extracted text.

    Steps run in a fixed order: collapse whitespace runs to one space, drop
    characters outside word characters, whitespace and common punctuation,
    collapse three or more newlines to two, collapse the space runs left
    behind by dropped characters, then trim.

    The newline cap never matches after the first step, which already folds
    newlines into spaces.
    """
    if not text:
        return ""
    text = _WHITESPACE_RUN.sub(" ", text)
    text = _DISALLOWED_CHARS.sub("", text)
    text = _EXCESS_NEWLINES.sub("\n\n", text)
    text = _SPACE_RUN.sub(" ", text)
    return text.strip()


def count_words(text: str) -> int:
    """Number of whitespace-separated non-empty tokens."""
    return len(text.split())

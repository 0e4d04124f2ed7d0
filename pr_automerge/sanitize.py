"""Commit message cleanup for PR bodies."""

import re

COMMENT_OPEN = "<!--"
COMMENT_CLOSE = "-->"

_BLANK_LINE_RUN = re.compile(r"\n{3,}")
_WHITESPACE_RUN = re.compile(r"[ \t]+")


def remove_html_comments(text: str) -> str:
    """
    Strip ``<!-- ... -->`` spans from a PR body and tidy the whitespace.

    An unterminated comment drops everything from its opening marker on. A
    comment containing another opening marker is treated as nested and the
    text is returned untouched, since we cannot tell where it really ends.

    Args:
        text: Raw PR body

    Returns:
        Body without HTML comments, with whitespace runs inside each line
        collapsed (leading indentation is kept), surrounding whitespace
        trimmed and at most one blank line in a row.
    """
    kept: list[str] = []
    pos = 0
    while True:
        start = text.find(COMMENT_OPEN, pos)
        if start == -1:
            kept.append(text[pos:])
            break

        kept.append(text[pos:start])
        end = text.find(COMMENT_CLOSE, start + len(COMMENT_OPEN))
        if end == -1:
            break
        if COMMENT_OPEN in text[start + len(COMMENT_OPEN) : end]:
            return text
        pos = end + len(COMMENT_CLOSE)

    return _normalize_whitespace("".join(kept))


def _normalize_whitespace(text: str) -> str:
    lines = []
    for line in text.splitlines():
        content = line.lstrip(" \t")
        if not content.strip():
            lines.append("")
            continue
        # Leading indentation carries Markdown nesting and code blocks
        indent = line[: len(line) - len(content)]
        lines.append(indent + _WHITESPACE_RUN.sub(" ", content).rstrip())
    return _BLANK_LINE_RUN.sub("\n\n", "\n".join(lines).strip())

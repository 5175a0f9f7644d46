"""
Plain-text rendering for messenger clients.

AI replies use light Markdown (headings, lists, pipe tables). Telegram and Bale
bots receive them as plain text, so markup is flattened here and the result is
split into provider-sized messages.
"""

import re

HEADING_MARKER = "🔹"
BULLET = "•"

_INLINE_PATTERNS = [
    (re.compile(r"\*\*(.+?)\*\*"), r"\1"),
    (re.compile(r"__(.+?)__"), r"\1"),
    (re.compile(r"\*(.+?)\*"), r"\1"),
    (re.compile(r"_(.+?)_"), r"\1"),
    (re.compile(r"`(.+?)`"), r"\1"),
    (re.compile(r"\[(.+?)\]\((.+?)\)"), r"\1"),
]

_HEADING_RE = re.compile(r"^#{1,6}\s+(.+)$")
_LIST_ITEM_RE = re.compile(r"^[-*]\s+")
_SEPARATOR_RE = re.compile(r"^[-:\s]+$")
_BLANK_RUN_RE = re.compile(r"\n{3,}")


def clean_inline_markdown(text: str) -> str:
    """Strip emphasis, inline code and link markup, keeping the inner text."""
    for pattern, replacement in _INLINE_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


def parse_table_row(line: str) -> list[str]:
    row = line.strip()
    if row.startswith("|"):
        row = row[1:]
    if row.endswith("|"):
        row = row[:-1]
    return [clean_inline_markdown(cell.strip()) for cell in row.split("|")]


def is_separator_row(line: str) -> bool:
    stripped = line.replace("|", "").strip()
    return bool(stripped) and bool(_SEPARATOR_RE.match(stripped))


def format_table_block(table_lines: list[str]) -> list[str]:
    """
    Render a pipe table as bullet lines.

    Two-column tables become "• key: value"; wider tables list every
    "header: value" pair of a row joined with " | ".
    """
    if len(table_lines) < 2:
        return [clean_inline_markdown(line) for line in table_lines]

    header = parse_table_row(table_lines[0])
    body_rows = [
        parse_table_row(line)
        for line in table_lines[1:]
        if not is_separator_row(line)
    ]

    if len(header) == 2:
        rendered = []
        for row in body_rows:
            left = row[0] if row[0] else "-"
            right = row[1] if len(row) > 1 and row[1] else "-"
            rendered.append(f"{BULLET} {left}: {right}")
        return rendered

    rendered = []
    for row in body_rows:
        parts = []
        for i, column in enumerate(header):
            key = column or f"ستون {i + 1}"
            value = row[i] if i < len(row) and row[i] else "-"
            parts.append(f"{key}: {value}")
        rendered.append(f"{BULLET} {' | '.join(parts)}")
    return rendered


def format_for_messenger(raw_text: str) -> str:
    """Convert Markdown-ish AI output into plain text for a messenger chat."""
    lines = raw_text.replace("\r\n", "\n").split("\n")
    output: list[str] = []

    i = 0
    while i < len(lines):
        line = lines[i].strip()
        i += 1

        if not line:
            output.append("")
            continue

        heading = _HEADING_RE.match(line)
        if heading:
            output.append(f"{HEADING_MARKER} {clean_inline_markdown(heading.group(1).strip())}")
            output.append("")
            continue

        if line.startswith("|"):
            table_lines = [line]
            while i < len(lines) and lines[i].strip().startswith("|"):
                table_lines.append(lines[i].strip())
                i += 1
            output.extend(format_table_block(table_lines))
            output.append("")
            continue

        if _LIST_ITEM_RE.match(line):
            output.append(f"{BULLET} {clean_inline_markdown(_LIST_ITEM_RE.sub('', line, count=1))}")
            continue

        output.append(clean_inline_markdown(line))

    return _BLANK_RUN_RE.sub("\n\n", "\n".join(output)).strip()


def split_long_message(text: str, max_length: int = 4000) -> list[str]:
    """
    Split text into chunks of at most max_length characters.

    A chunk ends at the last newline or space of its window when that boundary
    lies past 80% of the window; otherwise it is cut at max_length.
    """
    if len(text) <= max_length:
        return [text]

    chunks = []
    index = 0
    while index < len(text):
        chunk = text[index:index + max_length]

        if index + max_length < len(text):
            break_point = max(chunk.rfind("\n"), chunk.rfind(" "))
            if break_point > 0 and break_point > max_length * 0.8:
                chunk = chunk[:break_point]

        chunks.append(chunk.strip())
        index += len(chunk)

    return [chunk for chunk in chunks if chunk]

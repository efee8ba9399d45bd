"""Extraction of JSON documents from feed text that may contain comments."""
import json
import logging
from typing import Any, List, Tuple

logger = logging.getLogger(__name__)

OPENERS = {'{': '}', '[': ']'}
QUOTES = ('"', "'")


class ParseError(ValueError):
    """Raised when an isolated document is not valid JSON."""

    def __init__(self, message: str, offset: int):
        super().__init__(f"{message} (document at offset {offset})")
        self.offset = offset


def extract_json(text: str) -> List[Any]:
    """
    Extract every top-level JSON document from a text blob.

    Whitespace, ``//`` line comments and ``/* */`` block comments between
    documents are skipped, as is any other stray text (such as a
    ``var program =`` prefix). Single- or double-quoted literals that close
    on the same line are skipped whole, so brackets inside them do not
    start a document. Comments inside a document are removed before
    parsing.

    Args:
        text: Raw feed text

    Returns:
        Parsed documents in input order

    Raises:
        ParseError: If an isolated document is not valid JSON
    """
    documents = []
    if not text:
        return documents

    pos = 0
    length = len(text)
    while pos < length:
        char = text[pos]
        if char in OPENERS:
            document, pos = _read_document(text, pos)
            documents.append(document)
        elif text.startswith('//', pos):
            pos = _skip_line_comment(text, pos)
        elif text.startswith('/*', pos):
            pos = _skip_block_comment(text, pos)
        elif char in QUOTES:
            pos = _skip_string_literal(text, pos)
        else:
            pos += 1

    logger.debug(f"Extracted {len(documents)} JSON documents")
    return documents


def _skip_string_literal(text: str, pos: int) -> int:
    """
    Return the position just past a quoted literal between documents.

    A quote with no closing quote on the same line is treated as a
    single stray character.
    """
    quote = text[pos]
    escaped = False
    end = pos + 1
    length = len(text)
    while end < length and text[end] not in '\n\r':
        char = text[end]
        if escaped:
            escaped = False
        elif char == '\\':
            escaped = True
        elif char == quote:
            return end + 1
        end += 1
    return pos + 1


def _skip_line_comment(text: str, pos: int) -> int:
    """Return the position of the line terminator ending a // comment."""
    length = len(text)
    while pos < length and text[pos] not in '\n\r':
        pos += 1
    return pos


def _skip_block_comment(text: str, pos: int) -> int:
    """Return the position just past a /* */ comment."""
    end = text.find('*/', pos + 2)
    if end == -1:
        return len(text)
    return end + 2


def _read_document(text: str, start: int) -> Tuple[Any, int]:
    """
    Isolate and parse the document opening at ``start``.

    Returns:
        Tuple of (parsed document, position after its closing character)
    """
    stack = []
    parts = []
    chunk_start = start
    in_string = False
    escaped = False
    pos = start
    length = len(text)

    while pos < length:
        char = text[pos]
        if in_string:
            if escaped:
                escaped = False
            elif char == '\\':
                escaped = True
            elif char == '"':
                in_string = False
            pos += 1
            continue

        if char == '"':
            in_string = True
        elif char in OPENERS:
            stack.append(OPENERS[char])
        elif char in '}]':
            if not stack or stack[-1] != char:
                raise ParseError(f"Unbalanced '{char}'", start)
            stack.pop()
            if not stack:
                parts.append(text[chunk_start:pos + 1])
                return _parse(''.join(parts), start), pos + 1
        elif text.startswith('//', pos) or text.startswith('/*', pos):
            parts.append(text[chunk_start:pos])
            if text[pos + 1] == '/':
                pos = _skip_line_comment(text, pos)
            else:
                pos = _skip_block_comment(text, pos)
            chunk_start = pos
            continue
        pos += 1

    raise ParseError("Unterminated document", start)


def _parse(document: str, offset: int) -> Any:
    try:
        return json.loads(document)
    except json.JSONDecodeError as e:
        raise ParseError(f"Invalid JSON: {e.msg}", offset) from e

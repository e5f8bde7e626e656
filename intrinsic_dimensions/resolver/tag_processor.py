"""Streaming HTML tag processor — forward-only tag walk with bookmarks.

The processor visits opening and closing tags of a markup string in document
order, skipping text, comments, doctypes and the contents of raw-text
elements such as SCRIPT and STYLE. Attribute edits are queued against the
tag they were made on and only applied when ``get_updated_html()`` renders
the document, so seeking back to a bookmark always sees the same source.
"""

from __future__ import annotations

import html
import itertools
import logging
import re
from dataclasses import dataclass, field
from typing import Optional, Union

logger = logging.getLogger(__name__)

AttributeValue = Union[str, bool, None]

META_ATTRIBUTE_PREFIX = "data-od-"

VOID_ELEMENTS = frozenset({
    "AREA", "BASE", "BASEFONT", "BGSOUND", "BR", "COL", "EMBED", "FRAME",
    "HR", "IMG", "INPUT", "KEYGEN", "LINK", "META", "PARAM", "SOURCE",
    "TRACK", "WBR",
})
RAW_TEXT_ELEMENTS = frozenset({
    "IFRAME", "NOEMBED", "NOFRAMES", "SCRIPT", "STYLE", "TEXTAREA", "TITLE", "XMP",
})
FOREIGN_ELEMENTS = frozenset({"MATH", "SVG"})

_WHITESPACE = "\t\n\f\r "
_TAG_NAME_RE = re.compile(r"[a-zA-Z][^\t\n\f\r />]*")
_SEPARATOR_RE = re.compile(r"[\t\n\f\r /]*")
_ATTRIBUTE_RE = re.compile(
    r"(?P<name>[^\t\n\f\r />][^\t\n\f\r /=>]*)"
    r"(?:[\t\n\f\r ]*=[\t\n\f\r ]*(?P<value>\"[^\"]*\"|'[^']*'|[^\t\n\f\r >]*))?"
)
_INVALID_ATTRIBUTE_NAME_RE = re.compile(r"[\t\n\f\r \"'>/=]")


class TagProcessorError(Exception):
    """Base class for tag processor navigation failures."""


class BookmarkError(TagProcessorError):
    """Raised when a bookmark cannot be placed."""


class SeekError(TagProcessorError):
    """Raised when the processor cannot return to a bookmark."""


@dataclass(frozen=True)
class _Attribute:
    name: str
    start: int
    end: int
    value: AttributeValue


@dataclass
class _Token:
    start: int
    end: int
    tag: str
    is_closer: bool
    name_end: int
    xpath: str
    attributes: dict[str, _Attribute] = field(default_factory=dict)
    duplicates: list[_Attribute] = field(default_factory=list)
    # Breadcrumb state before this tag was parsed, used for bookmarks
    prior_breadcrumbs: tuple[tuple[str, int], ...] = ()
    prior_child_counts: tuple[int, ...] = (0,)


@dataclass(frozen=True)
class Bookmark:
    """Saved position of a tag in the stream."""

    serial: int
    offset: int
    breadcrumbs: tuple[tuple[str, int], ...]
    child_counts: tuple[int, ...]


def _decode_value(raw: Optional[str]) -> AttributeValue:
    if raw is None:
        return True
    if raw[:1] in ("'", '"'):
        raw = raw[1:-1]
    return html.unescape(raw)


def _serialize_attribute(name: str, value: Union[str, bool]) -> str:
    if value is True:
        return name
    return f'{name}="{html.escape(value, quote=True)}"'


class HtmlTagProcessor:
    """Walks the tags of one HTML document and queues attribute edits."""

    def __init__(self, markup: str, max_bookmarks: int = 10, max_seek_ops: int = 1000):
        self.markup = markup
        self.max_bookmarks = max_bookmarks
        self.max_seek_ops = max_seek_ops
        self._cursor = 0
        self._token: Optional[_Token] = None
        self._breadcrumbs: list[tuple[str, int]] = []
        self._child_counts: list[int] = [0]
        self._bookmarks: dict[int, Bookmark] = {}
        self._serials = itertools.count(1)
        self._seek_count = 0
        self._updates: dict[int, dict[str, AttributeValue]] = {}
        self._edited_tokens: dict[int, _Token] = {}

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def next_tag(self) -> bool:
        """Advance to the next opening or closing tag. Returns False at the end."""
        length = len(self.markup)
        while self._cursor < length:
            lt = self.markup.find("<", self._cursor)
            if lt == -1:
                break
            token = self._parse_at(lt)
            if token is not None:
                self._token = token
                return True
        self._cursor = length
        self._token = None
        return False

    def tell(self) -> int:
        """Offset where the next forward scan will resume."""
        return self._cursor

    def get_tag(self) -> Optional[str]:
        return self._token.tag if self._token else None

    def is_tag_closer(self) -> bool:
        return bool(self._token and self._token.is_closer)

    def get_xpath(self) -> Optional[str]:
        """Structural path of the current element, e.g. ``/*[1][self::HTML]/*[2][self::BODY]``."""
        return self._token.xpath if self._token else None

    # ------------------------------------------------------------------
    # Bookmarks
    # ------------------------------------------------------------------

    def mark(self) -> Bookmark:
        """Bookmark the current tag so the stream can be rewound to it."""
        if self._token is None:
            raise BookmarkError("No current tag to bookmark")
        if len(self._bookmarks) >= self.max_bookmarks:
            raise BookmarkError(f"Bookmark limit reached ({self.max_bookmarks})")
        bookmark = Bookmark(
            serial=next(self._serials),
            offset=self._token.start,
            breadcrumbs=self._token.prior_breadcrumbs,
            child_counts=self._token.prior_child_counts,
        )
        self._bookmarks[bookmark.serial] = bookmark
        return bookmark

    def restore(self, bookmark: Bookmark) -> None:
        """Rewind to a bookmarked tag, leaving the processor as it was when marked."""
        if self._bookmarks.get(bookmark.serial) is not bookmark:
            raise SeekError("Bookmark is unknown or already released")
        if self._seek_count >= self.max_seek_ops:
            raise SeekError(f"Seek limit reached ({self.max_seek_ops})")
        self._seek_count += 1

        self._breadcrumbs = list(bookmark.breadcrumbs)
        self._child_counts = list(bookmark.child_counts)
        self._cursor = bookmark.offset
        if not self.next_tag() or self._token.start != bookmark.offset:
            raise SeekError(f"No tag found at bookmarked offset {bookmark.offset}")

    def release(self, bookmark: Bookmark) -> None:
        self._bookmarks.pop(bookmark.serial, None)

    # ------------------------------------------------------------------
    # Attributes
    # ------------------------------------------------------------------

    def get_attribute(self, name: str) -> AttributeValue:
        """Return the decoded value, True for a valueless attribute, None if absent."""
        token = self._token
        if token is None or token.is_closer:
            return None
        name = name.lower()
        pending = self._updates.get(token.start, {})
        if name in pending:
            return pending[name]
        attr = token.attributes.get(name)
        return attr.value if attr else None

    def set_attribute(self, name: str, value: Union[str, bool]) -> bool:
        token = self._token
        if token is None or token.is_closer:
            return False
        name = name.lower()
        if not name or _INVALID_ATTRIBUTE_NAME_RE.search(name):
            logger.debug("Refusing to set invalid attribute name %r", name)
            return False
        self._updates.setdefault(token.start, {})[name] = None if value is False else value
        self._edited_tokens[token.start] = token
        return True

    def set_meta_attribute(self, name: str, value: Union[str, bool]) -> bool:
        """Set a ``data-od-*`` attribute read back by the capture script."""
        return self.set_attribute(META_ATTRIBUTE_PREFIX + name, value)

    def get_updated_html(self) -> str:
        """Render the document with all queued attribute edits applied."""
        pieces: list[str] = []
        cursor = 0
        for start in sorted(self._updates):
            token = self._edited_tokens[start]
            pieces.append(self.markup[cursor:token.start])
            pieces.append(self._render_tag(token, self._updates[start]))
            cursor = token.end
        pieces.append(self.markup[cursor:])
        return "".join(pieces)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _parse_at(self, lt: int) -> Optional[_Token]:
        markup = self.markup

        if markup.startswith("<!--", lt):
            # "<!-->" and "<!--->" are complete empty comments
            close = markup.find("-->", lt + 2)
            self._cursor = len(markup) if close == -1 else close + 3
            return None
        if markup[lt + 1:lt + 2] in ("!", "?"):
            close = markup.find(">", lt + 2)
            self._cursor = len(markup) if close == -1 else close + 1
            return None

        is_closer = markup[lt + 1:lt + 2] == "/"
        name_match = _TAG_NAME_RE.match(markup, lt + (2 if is_closer else 1))
        if name_match is None:
            # A lone "<" is text
            self._cursor = lt + 1
            return None

        attributes: dict[str, _Attribute] = {}
        duplicates: list[_Attribute] = []
        pos = name_match.end()
        while True:
            pos = _SEPARATOR_RE.match(markup, pos).end()
            if pos >= len(markup):
                # Unterminated tag, the remainder is not markup
                self._cursor = len(markup)
                return None
            if markup[pos] == ">":
                break
            attr_match = _ATTRIBUTE_RE.match(markup, pos)
            attr = _Attribute(
                name=attr_match.group("name").lower(),
                start=attr_match.start(),
                end=attr_match.end(),
                value=_decode_value(attr_match.group("value")),
            )
            if attr.name in attributes:
                duplicates.append(attr)
            else:
                attributes[attr.name] = attr
            pos = attr_match.end()

        tag = name_match.group().upper()
        end = pos + 1
        self_closing = markup[pos - 1] == "/"
        prior_breadcrumbs = tuple(self._breadcrumbs)
        prior_child_counts = tuple(self._child_counts)

        empty = self_closing and self._in_foreign_content(tag)
        if is_closer:
            xpath = self._close_element(tag)
        else:
            xpath = self._open_element(tag, empty)

        self._cursor = end
        if not is_closer and not empty and tag in RAW_TEXT_ELEMENTS:
            closer = re.compile(rf"</{tag}[\t\n\f\r />]", re.IGNORECASE).search(markup, end)
            self._cursor = closer.start() if closer else len(markup)

        return _Token(
            start=lt,
            end=end,
            tag=tag,
            is_closer=is_closer,
            name_end=name_match.end(),
            xpath=xpath,
            attributes=attributes,
            duplicates=duplicates,
            prior_breadcrumbs=prior_breadcrumbs,
            prior_child_counts=prior_child_counts,
        )

    def _in_foreign_content(self, tag: str) -> bool:
        return tag in FOREIGN_ELEMENTS or any(
            name in FOREIGN_ELEMENTS for name, _ in self._breadcrumbs
        )

    def _open_element(self, tag: str, empty: bool) -> str:
        self._child_counts[-1] += 1
        crumbs = self._breadcrumbs + [(tag, self._child_counts[-1])]
        xpath = "".join(f"/*[{index}][self::{name}]" for name, index in crumbs)

        if tag not in VOID_ELEMENTS and not empty:
            self._breadcrumbs = crumbs
            self._child_counts.append(0)
        return xpath

    def _close_element(self, tag: str) -> str:
        names = [name for name, _ in self._breadcrumbs]
        if tag not in names:
            # Stray closer
            return ""
        depth = len(names) - 1 - names[::-1].index(tag)
        crumbs = self._breadcrumbs[:depth + 1]
        xpath = "".join(f"/*[{index}][self::{name}]" for name, index in crumbs)
        del self._breadcrumbs[depth:]
        del self._child_counts[depth + 1:]
        return xpath

    def _render_tag(self, token: _Token, updates: dict[str, AttributeValue]) -> str:
        raw = self.markup[token.start:token.end]
        name_end = token.name_end - token.start
        edits: list[tuple[int, int, str]] = []
        insertions: list[str] = []

        for name, value in updates.items():
            existing = token.attributes.get(name)
            if existing is None:
                if value is not None:
                    insertions.append(_serialize_attribute(name, value))
                continue
            if value is None:
                edits.append(self._removal_span(raw, existing, token.start, name_end))
            else:
                edits.append((
                    existing.start - token.start,
                    existing.end - token.start,
                    _serialize_attribute(name, value),
                ))
            for duplicate in token.duplicates:
                if duplicate.name == name:
                    edits.append(self._removal_span(raw, duplicate, token.start, name_end))

        for start, end, replacement in sorted(edits, reverse=True):
            raw = raw[:start] + replacement + raw[end:]
        if insertions:
            raw = raw[:name_end] + "".join(" " + s for s in insertions) + raw[name_end:]
        return raw

    @staticmethod
    def _removal_span(raw: str, attr: _Attribute, offset: int, name_end: int) -> tuple[int, int, str]:
        start = attr.start - offset
        while start > name_end and raw[start - 1] in _WHITESPACE:
            start -= 1
        return (start, attr.end - offset, "")

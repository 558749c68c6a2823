"""Derives tags and wiki-style links from a note's title and body.

Tags and links are recomputed in full on every save; nothing here is
incremental. All functions are pure.
"""
from typing import Iterable, List, NamedTuple, Set

from localnotes.models.schema import NoteMeta

TAG_MARKER = "#"
LINK_OPEN = "[["
LINK_CLOSE = "]"


def _is_tag_char(ch: str) -> bool:
    return ch.isalnum() or ch in ("_", "-")


def tags_from_body(body: str) -> List[str]:
    """Collect ``#tag`` markers from a body.

    A tag is ``#`` followed by a run of letters, digits, ``_`` or ``-``.
    Case is preserved.

    Returns:
        Sorted, de-duplicated tag names.

    Example:
        >>> tags_from_body("hello #foo #Bar-2 baz")
        ['Bar-2', 'foo']
    """
    tags: Set[str] = set()
    i = 0
    n = len(body)
    while i < n:
        if body[i] != TAG_MARKER:
            i += 1
            continue
        j = i + 1
        while j < n and _is_tag_char(body[j]):
            j += 1
        if j > i + 1:
            tags.add(body[i + 1:j])
        i = j
    return sorted(tags)


def title_slug(title: str) -> str:
    """Lower-case, hyphen-joined slug of a title's words."""
    cleaned = "".join(
        ch if ch.isalnum() or ch in (" ", "-", "_") else " " for ch in title
    )
    return "-".join(word.lower() for word in cleaned.split())


def tags_from_title(title: str) -> List[str]:
    """Derive a "smart" tag from the title, e.g. ``Project Alpha`` -> ``project-alpha``.

    Nothing is emitted for slugs shorter than two UTF-8 bytes or made only
    of punctuation, so a single non-ASCII character such as ``中`` still
    yields a tag.
    """
    slug = title_slug(title)
    if len(slug.encode("utf-8")) >= 2 and any(ch.isalnum() for ch in slug):
        return [slug]
    return []


def link_titles(body: str) -> List[str]:
    """Raw ``[[...]]`` targets in order of appearance, trimmed, empties dropped.

    A ``]`` not directly followed by another ``]`` stays part of the title,
    together with the character after it. An unterminated token runs to the
    end of the body.
    """
    titles = []
    i = 0
    n = len(body)
    while i < n:
        if not body.startswith(LINK_OPEN, i):
            i += 1
            continue
        i += len(LINK_OPEN)
        captured = []
        while i < n:
            ch = body[i]
            if ch != LINK_CLOSE:
                captured.append(ch)
                i += 1
                continue
            i += 1
            if i < n and body[i] == LINK_CLOSE:
                i += 1
                break
            captured.append(ch)
            if i < n:
                captured.append(body[i])
                i += 1
        title = "".join(captured).strip()
        if title:
            titles.append(title)
    return titles


def links_from_body(body: str, notes: Iterable[NoteMeta], exclude_id: str) -> List[str]:
    """Resolve ``[[Title]]`` tokens to note ids.

    Each title resolves to the first note (other than ``exclude_id``) whose
    title matches case-insensitively. Unresolved titles are dropped.

    Returns:
        Sorted, de-duplicated note ids.
    """
    notes = list(notes)
    ids: Set[str] = set()
    for title in link_titles(body):
        wanted = title.lower()
        for note in notes:
            if note.id != exclude_id and note.title.lower() == wanted:
                ids.add(note.id)
                break
    return sorted(ids)


class Annotations(NamedTuple):
    tags: List[str]
    links_to: List[str]


def annotate(
    title: str, body: str, notes: Iterable[NoteMeta], note_id: str
) -> Annotations:
    """Full tag set (body tags plus title slug) and resolved links for a save."""
    tags = set(tags_from_body(body)) | set(tags_from_title(title))
    return Annotations(
        tags=sorted(tags),
        links_to=links_from_body(body, notes, exclude_id=note_id),
    )

"""Operator-based note search.

A query is split on whitespace. Each token is either an operator filter
(``tag:work``, ``is:starred``, ``date:week``, ``has:tasks`` ...) or a
free-text term. Every token must match: filters and terms are combined
with logical AND. Search is a linear scan of the index; bodies are read
only when a body-dependent token is present, and are never cached
across notes or calls.
"""
import datetime
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from localnotes.models.schema import IndexFile, NoteMeta, utc_now

logger = logging.getLogger(__name__)

BodyReader = Callable[[str], str]

UNCHECKED_MARKERS = ("- [ ]", "* [ ]")
CHECKED_MARKERS = ("- [x]", "- [X]", "* [x]", "* [X]")

DATE_WINDOWS_DAYS = {"week": 7, "month": 30}

OPERATOR_PREFIXES = frozenset({"tag:", "is:", "has:", "date:"})


class TokenKind(str, Enum):
    """Kinds of query tokens."""

    TAG = "tag"
    STARRED = "starred"
    DATE = "date"
    HAS_ATTACHMENTS = "has_attachments"
    HAS_TASKS = "has_tasks"
    COMPLETED = "completed"
    UNCOMPLETED = "uncompleted"
    TEXT = "text"


# Exact (lower-cased) tokens that map to a flag filter
_FLAG_TOKENS: Dict[str, Tuple[TokenKind, str]] = {
    "is:starred": (TokenKind.STARRED, ""),
    "date:today": (TokenKind.DATE, "today"),
    "date:week": (TokenKind.DATE, "week"),
    "date:month": (TokenKind.DATE, "month"),
    "has:attachments": (TokenKind.HAS_ATTACHMENTS, ""),
    "has:tasks": (TokenKind.HAS_TASKS, ""),
    "is:completed": (TokenKind.COMPLETED, ""),
    "is:uncompleted": (TokenKind.UNCOMPLETED, ""),
}

BODY_KINDS = frozenset(
    {TokenKind.HAS_TASKS, TokenKind.COMPLETED, TokenKind.UNCOMPLETED, TokenKind.TEXT}
)


@dataclass(frozen=True)
class QueryToken:
    """One classified query token. ``value`` is lower-cased."""

    kind: TokenKind
    value: str = ""

    @property
    def needs_body(self) -> bool:
        return self.kind in BODY_KINDS


def tokenize(query: str) -> List[QueryToken]:
    """Classify each whitespace-separated part of ``query``.

    Operators with an empty value (``tag:``, ``is:``, ``has:``, ``date:``)
    are dropped. Anything else that is not a known operator (including
    ``date:`` with an unknown window) is free text.
    """
    tokens = []
    for part in query.split():
        lowered = part.lower()
        if lowered in OPERATOR_PREFIXES:
            continue
        if lowered.startswith("tag:"):
            tag = lowered[len("tag:"):].strip()
            if tag:
                tokens.append(QueryToken(TokenKind.TAG, tag))
            continue
        flag = _FLAG_TOKENS.get(lowered)
        if flag is not None:
            tokens.append(QueryToken(*flag))
        else:
            tokens.append(QueryToken(TokenKind.TEXT, lowered))
    return tokens


def task_state(body: str) -> Tuple[bool, bool]:
    """Return ``(has_unchecked, has_checked)`` for GFM checkbox lines."""
    has_unchecked = False
    has_checked = False
    for line in body.splitlines():
        stripped = line.strip()
        if stripped.startswith(UNCHECKED_MARKERS):
            has_unchecked = True
        elif stripped.startswith(CHECKED_MARKERS):
            has_checked = True
        if has_unchecked and has_checked:
            break
    return has_unchecked, has_checked


@dataclass
class _Candidate:
    """A note under evaluation, with its body loaded at most once."""

    note: NoteMeta
    reader: BodyReader
    _body: Optional[str] = None

    @property
    def body(self) -> str:
        if self._body is None:
            self._body = self.reader(self.note.id)
        return self._body


@dataclass(frozen=True)
class _Context:
    today: str
    week_start: str
    month_start: str


def _match_tag(c: _Candidate, value: str, ctx: _Context) -> bool:
    return any(tag.lower() == value for tag in c.note.tags)


def _match_starred(c: _Candidate, value: str, ctx: _Context) -> bool:
    return c.note.important


def _match_date(c: _Candidate, value: str, ctx: _Context) -> bool:
    note_date = c.note.updated_at[:10]
    if value == "today":
        return note_date == ctx.today
    if value == "week":
        return note_date >= ctx.week_start
    return note_date >= ctx.month_start


def _match_has_attachments(c: _Candidate, value: str, ctx: _Context) -> bool:
    return bool(c.note.images)


def _match_has_tasks(c: _Candidate, value: str, ctx: _Context) -> bool:
    return any(task_state(c.body))


def _match_completed(c: _Candidate, value: str, ctx: _Context) -> bool:
    return task_state(c.body)[1]


def _match_uncompleted(c: _Candidate, value: str, ctx: _Context) -> bool:
    return task_state(c.body)[0]


def _match_text(c: _Candidate, value: str, ctx: _Context) -> bool:
    return value in c.note.title.lower() or value in c.body.lower()


PREDICATES: Dict[TokenKind, Callable[[_Candidate, str, _Context], bool]] = {
    TokenKind.TAG: _match_tag,
    TokenKind.STARRED: _match_starred,
    TokenKind.DATE: _match_date,
    TokenKind.HAS_ATTACHMENTS: _match_has_attachments,
    TokenKind.HAS_TASKS: _match_has_tasks,
    TokenKind.COMPLETED: _match_completed,
    TokenKind.UNCOMPLETED: _match_uncompleted,
    TokenKind.TEXT: _match_text,
}


def _context(today: Optional[datetime.date]) -> _Context:
    day = today or utc_now().date()
    return _Context(
        today=day.isoformat(),
        week_start=(day - datetime.timedelta(days=DATE_WINDOWS_DAYS["week"])).isoformat(),
        month_start=(day - datetime.timedelta(days=DATE_WINDOWS_DAYS["month"])).isoformat(),
    )


def _ordered(tokens: List[QueryToken]) -> List[QueryToken]:
    # Metadata-only tokens first, so body reads are skipped for notes they reject
    return sorted(tokens, key=lambda t: t.needs_body)


def search(
    index: IndexFile,
    query: str,
    body_reader: BodyReader,
    today: Optional[datetime.date] = None,
) -> List[NoteMeta]:
    """Evaluate ``query`` against every note of ``index``.

    Args:
        index: The loaded index.
        query: Query string; empty or whitespace-only returns every note.
        body_reader: Returns a note's body by id; called at most once per
            note and only for body-dependent tokens.
        today: UTC date the ``date:`` windows are measured from
            (defaults to today).

    Returns:
        Matching notes sorted by ``updated_at`` descending, or the whole
        index in stored order for an empty query.
    """
    if not query.strip():
        return list(index.notes)

    tokens = _ordered(tokenize(query))
    ctx = _context(today)
    results = []
    for note in index.notes:
        candidate = _Candidate(note=note, reader=body_reader)
        if all(PREDICATES[t.kind](candidate, t.value, ctx) for t in tokens):
            results.append(note)
    results.sort(key=lambda n: n.updated_at, reverse=True)
    logger.debug(f"Search {query!r}: {len(results)} of {len(index.notes)} notes matched")
    return results

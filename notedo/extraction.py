"""TODO sections of a note's Markdown body.

A TODO section starts at a heading titled exactly ``TODO`` (any level, any
case) and ends at the next heading or at the first non-blank line that is
neither indented nor a list item. Every ``-``/``*`` line inside it is a TODO
candidate, identified as ``{note_id}-{line_index}``. That id is only stable
until lines are inserted or removed above it.
"""
from __future__ import annotations

import re
from typing import Iterator, Optional, Sequence

from .models import Todo
from .priority import parse_priority, priority_prefix

TODO_HEADING_RE = re.compile(r"^#+\s*TODO\s*$", re.IGNORECASE)
HEADING_RE = re.compile(r"^#+\s")
LIST_MARKERS = ("-", "*")


def iter_todo_lines(lines: Sequence[str]) -> Iterator[tuple[int, str]]:
    """Yield ``(line_index, raw_line)`` for each list line inside a TODO section."""
    in_section = False
    for index, line in enumerate(lines):
        stripped = line.strip()
        if TODO_HEADING_RE.match(stripped):
            in_section = True
            continue
        if not in_section:
            continue
        if stripped.startswith(LIST_MARKERS):
            yield index, line
        elif HEADING_RE.match(stripped):
            in_section = False
        elif stripped and not line[:1].isspace():
            in_section = False


def todo_id_for(note_id: int | str, line_index: int) -> str:
    return f"{note_id}-{line_index}"


def note_prefix_of(todo_id: str) -> str:
    return todo_id.rsplit("-", 1)[0]


def extract_todos(note_id: int, content: str, note_title: Optional[str] = None) -> list[Todo]:
    """Build (unsaved) Todo rows for every non-empty item in the TODO sections."""
    todos: list[Todo] = []
    for index, line in iter_todo_lines(content.split("\n")):
        priority, text = parse_priority(line.strip()[1:])
        if not text:
            continue
        todos.append(
            Todo(
                id=todo_id_for(note_id, index),
                note_id=note_id,
                note_title=note_title,
                text=text,
                priority=priority,
                completed=False,
            )
        )
    return todos


def _locate(lines: Sequence[str], todo_id: str) -> Optional[int]:
    prefix = note_prefix_of(todo_id)
    for index, _ in iter_todo_lines(lines):
        if todo_id_for(prefix, index) == todo_id:
            return index
    return None


def locate_todo_line(content: str, todo_id: str) -> Optional[int]:
    """Index of the line ``todo_id`` currently points at, or None."""
    return _locate(content.split("\n"), todo_id)


def rewrite_todo_line(content: str, todo_id: str, new_text: str, new_priority: str) -> str:
    """Replace the text and priority of one TODO line, leaving every other line as is.

    Indentation and the list marker of the original line are kept; the
    priority is written in its canonical form. If ``todo_id`` does not
    resolve, ``content`` is returned unchanged.
    """
    lines = content.split("\n")
    index = _locate(lines, todo_id)
    if index is None:
        return content

    line = lines[index]
    stripped = line.lstrip()
    indent = line[: len(line) - len(stripped)]
    marker = stripped[0]
    eol = "\r" if line.endswith("\r") else ""
    lines[index] = f"{indent}{marker} {priority_prefix(new_priority)}{new_text}{eol}"
    return "\n".join(lines)

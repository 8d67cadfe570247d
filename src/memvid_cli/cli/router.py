"""Argument routing — turn a raw argv into one typed command.

Parsing is hand-rolled rather than left to click: the global ``--memory``
flag is honoured anywhere on the line, ``save`` swallows everything after
its first content token, and ``search --top`` falls back to 5 instead of
failing on a bad number.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import TextIO, Union

from memvid_cli.core.config import expand_home
from memvid_cli.core.errors import UsageError

MEMORY_FLAGS = ("--memory", "-m")
DEFAULT_TOP_K = 5
DEFAULT_LIST_COUNT = 20

# Counts and ids are unsigned 64-bit
_MAX_UINT = 2**64 - 1


@dataclass(frozen=True)
class SaveCommand:
    content: str = ""
    title: str | None = None
    tags: tuple[tuple[str, str], ...] = ()
    use_stdin: bool = False

    def resolve_content(self, stdin: TextIO) -> str:
        """Return the content to save, reading stdin when ``--stdin`` was given.

        Raises UsageError when the content is empty or whitespace.
        """
        content = stdin.read() if self.use_stdin else self.content
        if not content.strip():
            raise UsageError("No content provided")
        return content


@dataclass(frozen=True)
class SearchCommand:
    query: str
    top_k: int = DEFAULT_TOP_K


@dataclass(frozen=True)
class StatsCommand:
    pass


@dataclass(frozen=True)
class InspectCommand:
    frame_id: int


@dataclass(frozen=True)
class ListCommand:
    count: int = DEFAULT_LIST_COUNT


@dataclass(frozen=True)
class EmbedAllCommand:
    pass


@dataclass(frozen=True)
class DoctorCommand:
    rebuild_lex: bool = False
    rebuild_vec: bool = False
    rebuild_time: bool = False
    dry_run: bool = False
    vacuum: bool = False


@dataclass(frozen=True)
class HelpCommand:
    # False when help is shown because no command was given
    explicit: bool = True


@dataclass(frozen=True)
class UnknownCommand:
    name: str


Command = Union[
    SaveCommand,
    SearchCommand,
    StatsCommand,
    InspectCommand,
    ListCommand,
    EmbedAllCommand,
    DoctorCommand,
    HelpCommand,
    UnknownCommand,
]


@dataclass(frozen=True)
class ParsedArgs:
    command: Command
    memory_override: Path | None = None
    ignored_overrides: tuple[str, ...] = field(default=())


def _parse_uint(token: str) -> int | None:
    """Parse an unsigned 64-bit integer the strict way: digits only."""
    if token.isascii() and token.isdigit():
        value = int(token)
        if value <= _MAX_UINT:
            return value
    return None


def strip_memory_flag(
    argv: Sequence[str], environ: Mapping[str, str] | None = None
) -> tuple[list[str], Path | None, tuple[str, ...]]:
    """Remove every ``--memory``/``-m`` pair from argv.

    The first value wins; later ones are consumed but never replace it.
    Returns the remaining tokens, the expanded override, and any ignored
    values.
    """
    remaining: list[str] = []
    override: Path | None = None
    ignored: list[str] = []
    i = 0
    while i < len(argv):
        token = argv[i]
        if token in MEMORY_FLAGS:
            if i + 1 >= len(argv):
                raise UsageError("Missing path for --memory flag")
            value = expand_home(argv[i + 1], environ)
            if override is None:
                override = Path(value)
            else:
                ignored.append(value)
            i += 2
            continue
        remaining.append(token)
        i += 1
    return remaining, override, tuple(ignored)


def _parse_save(args: list[str]) -> SaveCommand:
    title: str | None = None
    tags: list[tuple[str, str]] = []
    use_stdin = False
    content = ""
    i = 0
    while i < len(args):
        token = args[i]
        if token in ("--title", "-t"):
            if i + 1 >= len(args):
                raise UsageError("Missing title value")
            title = args[i + 1]
            i += 2
        elif token == "--tag":
            if i + 1 >= len(args):
                raise UsageError("Missing tag value")
            # No '=' means no tag; dropped without a diagnostic
            key, sep, value = args[i + 1].partition("=")
            if sep:
                tags.append((key, value))
            i += 2
        elif token == "--stdin":
            use_stdin = True
            i += 1
        else:
            content = " ".join(args[i:])
            break

    if not use_stdin and not content.strip():
        raise UsageError("No content provided")
    return SaveCommand(content=content, title=title, tags=tuple(tags), use_stdin=use_stdin)


def _parse_search(args: list[str]) -> SearchCommand:
    words: list[str] = []
    top_k = DEFAULT_TOP_K
    query_closed = False
    i = 0
    while i < len(args):
        token = args[i]
        if token in ("--top", "-n"):
            if words:
                query_closed = True
            if i + 1 < len(args):
                parsed = _parse_uint(args[i + 1])
                top_k = parsed if parsed else DEFAULT_TOP_K
                i += 2
            else:
                i += 1
            continue
        if not query_closed:
            words.append(token)
        i += 1

    query = " ".join(words)
    if not query.strip():
        raise UsageError("No search query provided")
    return SearchCommand(query=query, top_k=top_k)


def _parse_inspect(args: list[str]) -> InspectCommand:
    if not args:
        raise UsageError("Usage: memvid inspect <frame_id>")
    frame_id = _parse_uint(args[0])
    if frame_id is None:
        raise UsageError(f"Invalid frame ID: {args[0]}")
    return InspectCommand(frame_id=frame_id)


def _parse_list(args: list[str]) -> ListCommand:
    count = _parse_uint(args[0]) if args else None
    return ListCommand(count=DEFAULT_LIST_COUNT if count is None else count)


def _parse_doctor(args: list[str]) -> DoctorCommand:
    flags = set(args)
    return DoctorCommand(
        rebuild_lex="--rebuild-lex" in flags,
        rebuild_vec="--rebuild-vec" in flags,
        rebuild_time="--rebuild-time" in flags,
        dry_run="--dry-run" in flags,
        vacuum="--vacuum" in flags,
    )


def parse_args(argv: Sequence[str], environ: Mapping[str, str] | None = None) -> ParsedArgs:
    """Map argv (without the program name) to a command.

    Raises UsageError for missing flag values, empty content or query, and
    unparsable frame ids. Never touches the store.
    """
    args, override, ignored = strip_memory_flag(argv, environ)

    if not args:
        return ParsedArgs(HelpCommand(explicit=False), override, ignored)

    name, rest = args[0], args[1:]
    command: Command
    if name == "save":
        command = _parse_save(rest)
    elif name in ("search", "find"):
        command = _parse_search(rest)
    elif name == "stats":
        command = StatsCommand()
    elif name == "inspect":
        command = _parse_inspect(rest)
    elif name in ("list", "ls"):
        command = _parse_list(rest)
    elif name == "doctor":
        command = _parse_doctor(rest)
    elif name == "embed-all":
        command = EmbedAllCommand()
    elif name in ("help", "--help", "-h"):
        command = HelpCommand()
    else:
        command = UnknownCommand(name)

    return ParsedArgs(command, override, ignored)

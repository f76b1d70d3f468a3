#!/usr/bin/env python3
"""
gittodo.py - TODO.md aggregator for trees of Git repositories

Finds every Git repository below a path and lists, adds, completes and
summarizes the checklist items kept in each repository's TODO.md.
Optional settings are loaded from gittodo.toml.
"""

import argparse
import fnmatch
import os
import re
import sys
import tomllib
from pathlib import Path
from datetime import datetime
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Iterator, NoReturn, Optional, TextIO
import atexit


TODO_FILE = "TODO.md"
CONFIG_FILE = "gittodo.toml"
REPO_MARKER = ".git"
DEFAULT_HEADER = "# Project Todos"
INCOMPLETE_MARKER = "- [ ]"
COMPLETE_MARKER = "- [x]"
RULE_WIDTH = 60
ORDINAL_PATTERN = re.compile(r"[1-9][0-9]*")


# ============================================================================
# Errors
# ============================================================================


class TodoError(Exception):
    """Base class for failures reported to the user with a nonzero exit."""

    exit_code = 1


class NotARepository(TodoError):
    """The working directory has no .git directory."""


class TodoFileMissing(TodoError):
    """The repository has no todo file to edit."""


class InvalidArgument(TodoError):
    """A command-line value is missing or malformed."""


class InvalidOrAlreadyComplete(TodoError):
    """The todo number does not name a currently incomplete item."""


class UnknownOption(TodoError):
    """An unrecognized flag or extra argument was given."""


class ConfigError(TodoError):
    """gittodo.toml could not be read or has wrong value types."""


class DiscoveryError(TodoError):
    """A directory could not be read during a strict scan."""


class TodoFileUnreadable(TodoError):
    """A todo file exists but cannot be read or is not valid UTF-8."""


# ============================================================================
# ANSI Color Codes (stdlib-only terminal styling)
# ============================================================================
class Colors:
    """ANSI escape codes for terminal colors."""

    RESET = "\033[0m"
    BOLD = "\033[1m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    CYAN = "\033[36m"
    BRIGHT_RED = "\033[91m"
    BRIGHT_GREEN = "\033[92m"
    BRIGHT_YELLOW = "\033[93m"


class Logger:
    """Centralized logging and output formatting."""

    _log_file: Optional[TextIO] = None

    @classmethod
    def set_log_file(cls, log_file: Optional[TextIO]) -> None:
        """Set the file that receives a plain-text copy of every message."""
        cls._log_file = log_file

    @classmethod
    def open_log_file(cls, path: str) -> None:
        """Open a log file in append mode for the rest of this run."""
        try:
            log_file = open(path, "a", encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"Cannot open log file {path}: {e.strerror}") from e
        cls.set_log_file(log_file)
        atexit.register(log_file.close)
        cls.write(f"\n[{cls.timestamp()}] gittodo run: {datetime.now().isoformat()}\n")

    @staticmethod
    def color(text: str, *codes: str) -> str:
        """Wrap text with ANSI color codes."""
        if not sys.stdout.isatty():
            return text  # No colors if not a terminal
        return "".join(codes) + text + Colors.RESET

    @staticmethod
    def strip_ansi(text: str) -> str:
        """Remove ANSI escape codes from text."""
        return re.sub(r"\033\[[0-9;]*m", "", text)

    @staticmethod
    def timestamp() -> str:
        """Return current timestamp in HH:MM:SS format for log entries."""
        return datetime.now().strftime("%H:%M:%S")

    @classmethod
    def write(cls, text: str) -> None:
        """Write text to log file (without ANSI codes)."""
        if cls._log_file:
            cls._log_file.write(cls.strip_ansi(text))
            cls._log_file.flush()

    @classmethod
    def info(cls, msg: str) -> None:
        print(f"{cls.color('▸', Colors.CYAN)} {msg}")
        cls.write(f"[{cls.timestamp()}] > {msg}\n")

    @classmethod
    def success(cls, msg: str) -> None:
        print(
            f"{cls.color('✓', Colors.BRIGHT_GREEN, Colors.BOLD)} {cls.color(msg, Colors.GREEN)}"
        )
        cls.write(f"[{cls.timestamp()}] [OK] {msg}\n")

    @classmethod
    def warning(cls, msg: str) -> None:
        print(
            f"{cls.color('⚠', Colors.BRIGHT_YELLOW, Colors.BOLD)} {cls.color(msg, Colors.YELLOW)}"
        )
        cls.write(f"[{cls.timestamp()}] [WARN] {msg}\n")

    @classmethod
    def error(cls, msg: str) -> None:
        """Print an error message to stderr."""
        print(
            f"{cls.color('✗', Colors.BRIGHT_RED, Colors.BOLD)} {cls.color(msg, Colors.RED)}",
            file=sys.stderr,
        )
        cls.write(f"[{cls.timestamp()}] [ERROR] {msg}\n")


# ============================================================================
# Configuration
# ============================================================================


class ConfigManager:
    """Loads optional settings from gittodo.toml."""

    DEFAULTS: dict = {
        "todo_file": TODO_FILE,
        "header": DEFAULT_HEADER,
        "exclude": [],
        "best_effort": True,
        "log_file": None,
    }
    TYPES: dict = {
        "todo_file": str,
        "header": str,
        "exclude": list,
        "best_effort": bool,
        "log_file": str,
    }

    _config: dict = {}
    _file_path: str = CONFIG_FILE

    @classmethod
    def set_file_path(cls, path: str) -> None:
        """Set the path to the config file."""
        cls._file_path = path

    @classmethod
    def get_config(cls) -> dict:
        """Get the loaded configuration."""
        return cls._config

    @classmethod
    def get(cls, key: str):
        """Get one setting, falling back to its default when nothing is loaded."""
        return cls._config.get(key, cls.DEFAULTS[key])

    @classmethod
    def load(cls, required: bool = False) -> dict:
        """
        Load configuration from gittodo.toml.

        Every key is optional:
            todo_file = "TODO.md"
            header = "# Project Todos"
            exclude = ["node_modules", ".venv"]
            best_effort = true
            log_file = "gittodo.log"

        Args:
            required: Fail if the file does not exist (set for --config).

        Returns:
            Configuration dictionary with every key present
        """
        config = dict(cls.DEFAULTS)
        config["exclude"] = []
        path = Path(cls._file_path)

        if not path.exists():
            if required:
                raise ConfigError(f"{cls._file_path} not found")
            cls._config = config
            return config

        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"{cls._file_path} is not valid TOML: {e}") from e
        except OSError as e:
            raise ConfigError(f"Cannot read {cls._file_path}: {e.strerror}") from e

        for key, value in data.items():
            if key not in cls.DEFAULTS:
                Logger.warning(f"{cls._file_path}: ignoring unknown key '{key}'")
                continue
            expected = cls.TYPES[key]
            if not isinstance(value, expected):
                raise ConfigError(
                    f"{cls._file_path}: '{key}' must be a {expected.__name__}"
                )
            config[key] = value

        if not all(isinstance(pattern, str) for pattern in config["exclude"]):
            raise ConfigError(f"{cls._file_path}: 'exclude' must be a list of strings")
        if not config["todo_file"]:
            raise ConfigError(f"{cls._file_path}: 'todo_file' must not be empty")

        cls._config = config
        return config


# ============================================================================
# Repository Discovery
# ============================================================================


class RepoLocator:
    """Finds Git repositories below a directory."""

    @staticmethod
    def is_repository(path: str | Path) -> bool:
        """True if path directly contains a .git directory."""
        return (Path(path) / REPO_MARKER).is_dir()

    @staticmethod
    def walk(
        start_path: str | Path = ".",
        best_effort: bool = True,
        exclude: Iterable[str] = (),
    ) -> Iterator[Path]:
        """
        Yield the root of every repository below start_path.

        The start path is resolved first, so relative and absolute spellings
        give the same results. Nested repositories are yielded separately.
        Order follows os.walk (top-down) and is not sorted.

        Args:
            start_path: Directory to scan
            best_effort: Skip unreadable directories instead of failing
            exclude: Directory-name glob patterns that are not descended into

        Raises:
            DiscoveryError: A directory could not be read and best_effort is off
        """
        root = Path(start_path).resolve()
        patterns = list(exclude)

        def onerror(err: OSError) -> None:
            if not best_effort:
                raise DiscoveryError(f"Cannot read {err.filename}: {err.strerror}")

        for dirpath, dirnames, _ in os.walk(root, onerror=onerror):
            if REPO_MARKER in dirnames:
                yield Path(dirpath)
            dirnames[:] = [
                d
                for d in dirnames
                if d != REPO_MARKER
                and not any(fnmatch.fnmatch(d, pattern) for pattern in patterns)
            ]


def find_repositories(
    start_path: str | Path = ".",
    best_effort: bool = True,
    exclude: Iterable[str] = (),
) -> list[Path]:
    return list(RepoLocator.walk(start_path, best_effort, exclude))


# ============================================================================
# Todo File Format
# ============================================================================


class LineKind(Enum):
    """What a single todo file line holds."""

    INCOMPLETE = "incomplete"
    COMPLETE = "complete"
    OTHER = "other"


def classify_line(line: str) -> LineKind:
    """Classify a line by its first five characters. Only lowercase x completes."""
    prefix = line[: len(INCOMPLETE_MARKER)]
    if prefix == INCOMPLETE_MARKER:
        return LineKind.INCOMPLETE
    if prefix == COMPLETE_MARKER:
        return LineKind.COMPLETE
    return LineKind.OTHER


def strip_eol(line: str) -> str:
    return line.rstrip("\r\n")


@dataclass(frozen=True)
class TodoLine:
    """One line of a todo file."""

    number: int  # 1-based line number in the file
    text: str
    kind: LineKind


class TodoFile:
    """A repository's todo file: parsing and in-place edits."""

    def __init__(self, repo_root: str | Path, name: Optional[str] = None):
        self.repo_root = Path(repo_root)
        self.path = self.repo_root / (name or ConfigManager.get("todo_file"))

    def exists(self) -> bool:
        return self.path.is_file()

    def read_lines(self) -> list[str]:
        """
        Read raw lines with their original terminators.

        Raises:
            TodoFileUnreadable: The file cannot be opened or is not valid UTF-8
        """
        try:
            with open(self.path, "r", encoding="utf-8", newline="") as f:
                return f.readlines()
        except UnicodeDecodeError as e:
            raise TodoFileUnreadable(
                f"{self.path} is not valid UTF-8 (byte {e.start})"
            ) from e
        except OSError as e:
            raise TodoFileUnreadable(f"Cannot read {self.path}: {e.strerror}") from e

    def parse(self) -> list[TodoLine]:
        """Parse the file into ordered line records."""
        return [
            TodoLine(number, strip_eol(raw), classify_line(raw))
            for number, raw in enumerate(self.read_lines(), start=1)
        ]

    def _ends_with_newline(self) -> bool:
        if self.path.stat().st_size == 0:
            return True
        with open(self.path, "rb") as f:
            f.seek(-1, os.SEEK_END)
            return f.read(1) in (b"\n", b"\r")

    def add(self, text: str, header: Optional[str] = None) -> str:
        """
        Append a new incomplete item, creating the file with a header if needed.

        The text is written as given. An embedded newline splits the item
        across lines.

        Returns:
            The appended line
        """
        item = f"{INCOMPLETE_MARKER} {text}"
        if not self.exists():
            prefix = f"{header if header is not None else ConfigManager.get('header')}\n\n"
        elif not self._ends_with_newline():
            prefix = "\n"
        else:
            prefix = ""

        with open(self.path, "a", encoding="utf-8", newline="") as f:
            f.write(f"{prefix}{item}\n")
        return item

    def complete(self, ordinal: int) -> str:
        """
        Mark the ordinal-th incomplete item (1-based, file order) as complete.

        Only the marker of the selected line changes; every other byte of the
        file is written back as read.

        Returns:
            The modified line without its terminator

        Raises:
            TodoFileMissing: No todo file exists
            InvalidOrAlreadyComplete: Fewer than ordinal incomplete items remain
        """
        if not self.exists():
            raise TodoFileMissing(f"No {self.path.name} found in {self.repo_root}")

        raw_lines = self.read_lines()
        positions = [
            index
            for index, raw in enumerate(raw_lines)
            if classify_line(raw) is LineKind.INCOMPLETE
        ]
        if ordinal > len(positions):
            raise InvalidOrAlreadyComplete(
                f"Todo #{ordinal} is invalid or already complete"
            )

        index = positions[ordinal - 1]
        raw_lines[index] = COMPLETE_MARKER + raw_lines[index][len(INCOMPLETE_MARKER):]
        with open(self.path, "w", encoding="utf-8", newline="") as f:
            f.writelines(raw_lines)
        return strip_eol(raw_lines[index])


def parse_todo_file(repo_root: str | Path) -> Optional[list[TodoLine]]:
    """Parse a repository's todo file, or return None if it has none."""
    todo_file = TodoFile(repo_root)
    if not todo_file.exists():
        return None
    return todo_file.parse()


# ============================================================================
# Rendering
# ============================================================================


class TodoRenderer:
    """Formats parsed todo files as numbered listings."""

    @staticmethod
    def format_lines(lines: Iterable[TodoLine]) -> list[str]:
        """Number incomplete items from 1; indent everything else by four spaces."""
        rendered = []
        count = 0
        for line in lines:
            if line.kind is LineKind.INCOMPLETE:
                count += 1
                rendered.append(f"{count:3d} {line.text}")
            else:
                rendered.append(f"    {line.text}")
        return rendered

    @classmethod
    def render(cls, repo_root: str | Path) -> Optional[str]:
        """
        Render one repository's todo file.

        The block is the repository name, its full path, a rule, the numbered
        lines, another rule and a trailing blank line.

        Returns:
            The listing, or None if the repository has no todo file
        """
        lines = parse_todo_file(repo_root)
        if lines is None:
            return None

        root = Path(repo_root).resolve()
        rule = "-" * RULE_WIDTH
        block = [root.name or str(root), str(root), rule]
        block.extend(cls.format_lines(lines))
        block.extend([rule, ""])
        return "\n".join(block)


def render(repo_root: str | Path) -> Optional[str]:
    return TodoRenderer.render(repo_root)


# ============================================================================
# Mutations (act on the working directory only)
# ============================================================================


def parse_ordinal(value: str | int) -> int:
    """Validate a todo number: a positive decimal integer with no leading zero."""
    text = str(value)
    if not ORDINAL_PATTERN.fullmatch(text):
        raise InvalidArgument(f"Todo number must be a positive integer, got '{text}'")
    return int(text)


def require_repository(cwd: Optional[str | Path] = None) -> Path:
    """Return cwd (default: the process working directory) if it is a repository root."""
    root = Path(cwd) if cwd is not None else Path.cwd()
    if not RepoLocator.is_repository(root):
        raise NotARepository(
            f"{root} is not a Git repository root (no {REPO_MARKER} directory)"
        )
    return root


def add_todo(text: str, cwd: Optional[str | Path] = None) -> str:
    """Append an incomplete item to the todo file in cwd. Returns the new line."""
    root = require_repository(cwd)
    return TodoFile(root).add(text)


def complete_todo(number: str | int, cwd: Optional[str | Path] = None) -> str:
    """Complete the number-th incomplete item in cwd. Returns the modified line."""
    ordinal = parse_ordinal(number)
    root = require_repository(cwd)
    return TodoFile(root).complete(ordinal)


# ============================================================================
# Summary
# ============================================================================


@dataclass
class TodoSummary:
    """Todo counts across all scanned repositories."""

    repositories: int = 0
    repositories_with_todos: int = 0
    incomplete: int = 0
    complete: int = 0

    @property
    def total(self) -> int:
        return self.incomplete + self.complete


class Summarizer:
    """Counts todo items across every repository below a path."""

    @staticmethod
    def count(lines: Iterable[TodoLine]) -> tuple[int, int]:
        """Return (incomplete, complete) counts for parsed lines."""
        incomplete = 0
        complete = 0
        for line in lines:
            if line.kind is LineKind.INCOMPLETE:
                incomplete += 1
            elif line.kind is LineKind.COMPLETE:
                complete += 1
        return incomplete, complete

    @classmethod
    def summarize(
        cls,
        start_path: str | Path = ".",
        best_effort: bool = True,
        exclude: Iterable[str] = (),
    ) -> TodoSummary:
        summary = TodoSummary()
        for repo in RepoLocator.walk(start_path, best_effort, exclude):
            summary.repositories += 1
            try:
                lines = parse_todo_file(repo)
            except TodoFileUnreadable as e:
                if not best_effort:
                    raise
                Logger.warning(f"Skipping {e}")
                continue
            if lines is None:
                continue
            summary.repositories_with_todos += 1
            incomplete, complete = cls.count(lines)
            summary.incomplete += incomplete
            summary.complete += complete
        return summary

    @staticmethod
    def format(summary: TodoSummary) -> str:
        """Render the fixed-format summary block."""
        rows = [
            ("Repositories scanned:", summary.repositories),
            (
                f"Repositories with {ConfigManager.get('todo_file')}:",
                summary.repositories_with_todos,
            ),
            ("Incomplete:", summary.incomplete),
            ("Complete:", summary.complete),
            ("Total:", summary.total),
        ]
        width = max(len(label) for label, _ in rows) + 1
        block = ["TODO Summary", "-" * RULE_WIDTH]
        block.extend(f"{label:<{width}}{value:>5}" for label, value in rows)
        return "\n".join(block)


def summarize(
    start_path: str | Path = ".",
    best_effort: bool = True,
    exclude: Iterable[str] = (),
) -> TodoSummary:
    return Summarizer.summarize(start_path, best_effort, exclude)


def format_summary(summary: TodoSummary) -> str:
    return Summarizer.format(summary)


# ============================================================================
# Command Line
# ============================================================================


class UsageParser(argparse.ArgumentParser):
    """ArgumentParser that prints usage to stderr and raises instead of exiting 2."""

    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        if message.startswith("unrecognized arguments"):
            raise UnknownOption(f"{self.prog}: {message}")
        raise InvalidArgument(f"{self.prog}: {message}")


VALUE_OPTIONS = {"-a": "--add", "--add": "--add", "-c": "--complete", "--complete": "--complete"}


def bind_option_values(argv: Optional[list[str]] = None) -> list[str]:
    """
    Attach the token after -a/-c to its option as --add=TOKEN.

    argparse refuses a value that looks like a flag, so "-a -refactor" would
    otherwise be a usage error. A trailing -a/-c with nothing after it is left
    for argparse to report.
    """
    tokens = list(sys.argv[1:] if argv is None else argv)
    bound = []
    i = 0
    while i < len(tokens):
        token = tokens[i]
        if token == "--":
            bound.extend(tokens[i:])
            break
        if token in VALUE_OPTIONS and i + 1 < len(tokens):
            bound.append(f"{VALUE_OPTIONS[token]}={tokens[i + 1]}")
            i += 2
            continue
        bound.append(token)
        i += 1
    return bound


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = UsageParser(
        prog="gittodo",
        description="Aggregate TODO.md checklists across a tree of Git repositories",
    )
    actions = parser.add_mutually_exclusive_group()
    actions.add_argument(
        "-l",
        "--list",
        action="store_true",
        help="List todos of every repository under PATH (default action)",
    )
    actions.add_argument(
        "-a",
        "--add",
        metavar="TEXT",
        help="Append an incomplete todo to TODO.md in the current repository",
    )
    actions.add_argument(
        "-c",
        "--complete",
        metavar="N",
        help="Mark the Nth incomplete todo in the current repository as complete",
    )
    actions.add_argument(
        "-s",
        "--summary",
        action="store_true",
        help="Print todo counts across every repository under PATH",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Fail on unreadable directories instead of skipping them",
    )
    parser.add_argument(
        "--config",
        metavar="FILE",
        help=f"Configuration file (default: {CONFIG_FILE} if present)",
    )
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        metavar="PATH",
        help="Directory to scan for --list/--summary (default: .)",
    )
    return parser.parse_args(bind_option_values(argv))


def run_list(path: str, best_effort: bool, exclude: Iterable[str]) -> int:
    shown = 0
    for repo in RepoLocator.walk(path, best_effort, exclude):
        try:
            listing = TodoRenderer.render(repo)
        except TodoFileUnreadable as e:
            if not best_effort:
                raise
            Logger.warning(f"Skipping {e}")
            continue
        if listing is None:
            continue
        print(listing)
        shown += 1

    if shown == 0:
        Logger.info(f"No {ConfigManager.get('todo_file')} files found")
    return 0


def run_summary(path: str, best_effort: bool, exclude: Iterable[str]) -> int:
    print(format_summary(summarize(path, best_effort, exclude)))
    return 0


def run_add(text: str) -> int:
    add_todo(text)
    Logger.success(f"Added todo: {text}")
    return 0


def run_complete(number: str) -> int:
    line = complete_todo(number)
    Logger.success(f"Completed: {line}")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Dispatch one action. --help exits from argument parsing."""
    try:
        args = parse_args(argv)

        if args.config:
            ConfigManager.set_file_path(args.config)
        config = ConfigManager.load(required=bool(args.config))
        if config["log_file"]:
            Logger.open_log_file(config["log_file"])

        best_effort = config["best_effort"] and not args.strict

        if args.add is not None:
            return run_add(args.add)
        if args.complete is not None:
            return run_complete(args.complete)
        if args.summary:
            return run_summary(args.path, best_effort, config["exclude"])
        return run_list(args.path, best_effort, config["exclude"])
    except TodoError as e:
        Logger.error(str(e))
        return e.exit_code


if __name__ == "__main__":
    sys.exit(main())

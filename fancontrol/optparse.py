"""Command-line option parser with exclusive groups and positional slots.

Options are described by :class:`Option` entries whose ``optstring`` lists
their spellings separated by any of ``" |,"``: ``-x`` is a short option,
``--name`` a long one and a bare word a positional argument.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Iterator, Optional, Sequence, Union

NARGS_MASK = 0x3F
REQUIRED_OPTION = 0x40
NO_SEPARATE_OPTIONALS = 0x01000000
NO_OPTIONS_AS_ARGUMENTS = 0x02000000
OPTIONS_PYTHON = NO_OPTIONS_AS_ARGUMENTS
OPTIONS_GETOPT = NO_SEPARATE_OPTIONALS
OPTIONS_MAX = 256

_MAX_POSITIONALS = 32
_DELIMITERS = " |,"
_NARGS_SYMBOLS = {"?": ord("?"), "*": ord("*"), "+": ord("+")}
_DIGITS = "0123456789"


class ParseErrorKind(enum.IntEnum):
    """Reasons a parse step can fail."""

    SUCCESS = 0
    MUTUALLY_EXCLUSIVE = 1
    UNKNOWN_OPTION = 2
    ARGUMENT_REQUIRED = 3
    TOO_MANY_ARGUMENTS = 4
    UNKNOWN = 5

    @property
    def message(self) -> str:
        return _MESSAGES[self]


_MESSAGES = {
    ParseErrorKind.SUCCESS: "Success",
    ParseErrorKind.MUTUALLY_EXCLUSIVE: "Mutual exclusion conflict",
    ParseErrorKind.UNKNOWN_OPTION: "Unknown option",
    ParseErrorKind.ARGUMENT_REQUIRED: "Argument required",
    ParseErrorKind.TOO_MANY_ARGUMENTS: "Too many arguments",
    ParseErrorKind.UNKNOWN: "Unknown error",
}


def str_error(kind: Union[ParseErrorKind, int]) -> str:
    """Return the message for an error kind; unknown values map to a generic one."""
    try:
        return ParseErrorKind(kind).message
    except ValueError:
        return ParseErrorKind.UNKNOWN.message


class OptParseError(Exception):
    """Raised when the command line does not match the option table."""

    def __init__(
        self,
        kind: ParseErrorKind,
        optopt: Optional[str] = None,
        optarg: Optional[str] = None,
    ) -> None:
        self.kind = kind
        self.optopt = optopt
        self.optarg = optarg
        super().__init__(_describe(kind, optopt, optarg))


def _describe(kind: ParseErrorKind, optopt: Optional[str], optarg: Optional[str]) -> str:
    text = str_error(kind)
    if optopt is not None:
        text = f"{optopt}: {text}"
    if optarg is not None:
        text = f"{text}: {optarg}"
    return text


def _nargs_code(nargs: Union[int, str]) -> int:
    if isinstance(nargs, str):
        if nargs not in _NARGS_SYMBOLS:
            raise ValueError(f"invalid nargs: {nargs!r}")
        return _NARGS_SYMBOLS[nargs]
    if isinstance(nargs, bool) or not 0 <= nargs <= NARGS_MASK:
        raise ValueError(f"invalid nargs: {nargs!r}")
    return nargs


def _argument_is_required(flags: int) -> bool:
    return (flags & NARGS_MASK) not in (0, ord("?"), ord("*"))


@dataclass(frozen=True)
class Option:
    """One entry of an option table.

    ``nargs`` is 0, 1, ``"?"``, ``"*"`` or ``"+"``; ``value`` is what
    :meth:`OptParser.get_opt` returns when the option is seen.
    """

    optstring: str
    value: int
    nargs: Union[int, str] = 0
    required: bool = False

    def __post_init__(self) -> None:
        _nargs_code(self.nargs)

    @property
    def flags(self) -> int:
        return _nargs_code(self.nargs) | (REQUIRED_OPTION if self.required else 0)


@dataclass(frozen=True)
class Include:
    """Splice another option table in at this point."""

    options: Sequence[object]


@dataclass(frozen=True)
class ExclusiveGroup:
    """Start a group of mutually exclusive options."""

    name: str = ""


@dataclass(frozen=True)
class ExclusiveGroupEnd:
    """End the current exclusive group."""


class _State(enum.Enum):
    UNINITIALIZED = "uninitialized"
    POSITIONAL = "positional"
    SHORT_OPT = "short_opt"
    LONG_OPT = "long_opt"
    SHORT_PARAMETER = "short_parameter"
    LONG_PARAMETER = "long_parameter"
    OPTIONS_END = "options_end"
    NEXT_WORD = "next_word"
    EOF = "EOF"


class _Op(enum.Enum):
    IS_EOF = "is_eof"
    GETOPTARG = "getoptarg"
    GETARG = "getarg"
    NEXT = "next"
    REWIND_SHORT_OPT = "rewind_short_opt"


@dataclass
class _Entry:
    option: Option
    group: int
    count: int = 0


def _tokens(optstring: str, skip_leading: bool) -> Iterator[tuple[int, str]]:
    """Yield (number of leading dashes, name) for each spelling in an optstring."""
    i, n = 0, len(optstring)
    while i < n:
        if skip_leading:
            while i < n and optstring[i] in _DELIMITERS:
                i += 1
        ndashes = (optstring[i:i + 1] == "-") + (optstring[i + 1:i + 2] == "-")
        i += ndashes
        start = i
        while i < n and optstring[i] not in _DELIMITERS:
            i += 1
        name = optstring[start:i]
        if not skip_leading:
            while i < n and optstring[i] in _DELIMITERS:
                i += 1
        yield ndashes, name


def _is_negative_num(word: str) -> bool:
    if not word.startswith("-"):
        return False
    digits = 0
    for char in word[1:]:
        if char in _DIGITS:
            digits += 1
        elif char in ".,":
            continue
        else:
            return digits > 0
    return True


def _classify(word: str) -> _State:
    if word.startswith("-"):
        if word[1:2] == "-":
            return _State.LONG_OPT if len(word) > 2 else _State.OPTIONS_END
        return _State.SHORT_OPT if len(word) > 1 else _State.POSITIONAL
    return _State.POSITIONAL


class OptParser:
    """Incremental parser over ``argv``; ``argv[0]`` is the program name."""

    def __init__(self, argv: Sequence[str], options: Sequence[object], flags: int = 0) -> None:
        self.argv = list(argv)
        self.flags = flags
        self.argi = 0
        self.optopt: Optional[str] = None
        self.optarg: Optional[str] = None
        self.error = ParseErrorKind.SUCCESS
        self._state = _State.UNINITIALIZED
        self._arg_offset = 0
        self._arg_len = -1
        self._positional_count = 0
        self._end_of_options = False
        self._groups_count = 0
        self._groups = 0
        self._entries: list[_Entry] = []
        self._short: dict[str, int] = {}
        self._positional: list[int] = []
        self.set_options(options, True)

    # -- option table -------------------------------------------------------

    def set_options(self, options: Sequence[object], reset: bool = False) -> None:
        """Replace the option table; counts of entries at existing positions are kept."""
        old_entries = self._entries
        self._entries = []
        self._short = {}
        self._positional = []
        if reset:
            self._groups_count = 0
            self._groups = 0
        self._register(options, False)
        if len(self._entries) > OPTIONS_MAX:
            raise ValueError(f"too many options (maximum is {OPTIONS_MAX})")
        for entry, old in zip(self._entries, old_entries):
            entry.count = old.count

    def _register(self, options: Sequence[object], in_group: bool) -> None:
        for item in options:
            if isinstance(item, Include):
                self._register(item.options, in_group)
            elif isinstance(item, ExclusiveGroup):
                in_group = True
                self._groups_count += 1
            elif isinstance(item, ExclusiveGroupEnd):
                in_group = False
            elif isinstance(item, Option):
                index = len(self._entries)
                self._entries.append(_Entry(item, self._groups_count if in_group else 0))
                for ndashes, name in _tokens(item.optstring, skip_leading=False):
                    if ndashes == 0:
                        self._positional.append(index)
                    elif ndashes == 1:
                        self._short[name[:1]] = index
            else:
                raise TypeError(f"not an option table entry: {item!r}")

    # -- state machine ------------------------------------------------------

    @property
    def _word(self) -> str:
        return self.argv[self.argi]

    @property
    def _arg(self) -> str:
        return self._word[self._arg_offset:]

    def _state_ctl(self, op: _Op, flags: int) -> bool:
        while True:
            state = self._state
            if state is _State.UNINITIALIZED:
                self.argi = 0
                self.optopt = None
                self.optarg = None
                self.error = ParseErrorKind.SUCCESS
                self._arg_offset = 0
                self._arg_len = -1
                self._positional_count = 0
                self._end_of_options = False
                self._state = _State.NEXT_WORD
            elif state is _State.NEXT_WORD:
                self._advance_word()
            else:
                return self._apply(state, op, flags)

    def _advance_word(self) -> None:
        if self.argi + 1 >= len(self.argv):
            self._state = _State.EOF
            return
        self.argi += 1
        self._arg_offset = 0
        self._arg_len = -1
        if self._end_of_options:
            self._state = _State.POSITIONAL
            return
        word = self._word
        self._state = _classify(word)
        if self._state is _State.SHORT_OPT:
            self._arg_offset = 1
            self._arg_len = 1
        elif self._state is _State.LONG_OPT:
            self._arg_offset = 2
            self._arg_len = len(word[2:].split("=", 1)[0])
        elif self._state is _State.OPTIONS_END:
            self._end_of_options = True

    def _apply(self, state: _State, op: _Op, flags: int) -> bool:
        required = _argument_is_required(flags)

        if state is _State.SHORT_OPT:
            if op is _Op.GETOPTARG:
                if flags & NO_SEPARATE_OPTIONALS:
                    return not required
                if flags & NO_OPTIONS_AS_ARGUMENTS and not _is_negative_num(self._word):
                    return not required
                self.optarg = self._word
                self._state = _State.NEXT_WORD
                return True
            if op is _Op.NEXT:
                if self._arg_offset + 1 < len(self._word):
                    self._arg_offset += 1
                    self._state = _State.SHORT_PARAMETER
                else:
                    self._state = _State.NEXT_WORD
                return True
            return False

        if state is _State.LONG_OPT:
            if op is _Op.GETOPTARG:
                if flags & (NO_OPTIONS_AS_ARGUMENTS | NO_SEPARATE_OPTIONALS):
                    return not required
                self.optarg = self._word
                self._state = _State.NEXT_WORD
                return True
            if op is _Op.NEXT:
                if self._arg_offset + self._arg_len < len(self._word):
                    self._arg_offset += self._arg_len + 1
                    self._arg_len = -1
                    self._state = _State.LONG_PARAMETER
                else:
                    self._state = _State.NEXT_WORD
                return True
            return False

        if state in (_State.SHORT_PARAMETER, _State.LONG_PARAMETER):
            if op is _Op.GETOPTARG:
                self.optarg = self._arg
            if op in (_Op.GETOPTARG, _Op.NEXT):
                self._state = _State.NEXT_WORD
                return True
            if op is _Op.REWIND_SHORT_OPT and state is _State.SHORT_PARAMETER:
                self._state = _State.SHORT_OPT
                return True
            return False

        if state is _State.OPTIONS_END:
            if op is _Op.NEXT:
                self._state = _State.NEXT_WORD
                return True
            return False

        if state is _State.POSITIONAL:
            if op is _Op.GETOPTARG and flags & NO_SEPARATE_OPTIONALS and required:
                return False
            if op in (_Op.GETOPTARG, _Op.GETARG):
                self.optarg = self._arg
            if op in (_Op.GETOPTARG, _Op.GETARG, _Op.NEXT):
                self._state = _State.NEXT_WORD
                return True
            return False

        # EOF
        if op in (_Op.GETARG, _Op.GETOPTARG):
            return not required
        return op is _Op.IS_EOF

    def _match(self) -> Optional[_Entry]:
        self._state_ctl(_Op.IS_EOF, 0)
        state = self._state
        if state is _State.POSITIONAL:
            count = self._positional_count
            if count < _MAX_POSITIONALS and count < len(self._positional):
                return self._entries[self._positional[count]]
        elif state is _State.SHORT_OPT:
            index = self._short.get(self._word[self._arg_offset])
            if index is not None:
                return self._entries[index]
        elif state is _State.LONG_OPT:
            name = self._word[self._arg_offset:self._arg_offset + self._arg_len]
            for entry in self._entries:
                for ndashes, token in _tokens(entry.option.optstring, skip_leading=True):
                    if ndashes == 2 and token == name:
                        return entry
        return None

    def _fail(self, kind: ParseErrorKind) -> OptParseError:
        self.error = kind
        return OptParseError(kind, self.optopt, self.optarg)

    def _exclusive_ok(self, entry: _Entry) -> bool:
        return (
            not entry.group
            or not self._groups & (1 << (entry.group - 1))
            or entry.count > 0
        )

    # -- public interface ---------------------------------------------------

    def get_opt(self) -> Optional[int]:
        """Parse the next option and return its value, or None at the end.

        ``optopt`` holds the matched option string and ``optarg`` its
        argument, if any.
        """
        self.optarg = None
        while True:
            entry = self._match()
            if entry is not None:
                break
            if self._state is _State.OPTIONS_END:
                self._state_ctl(_Op.NEXT, 0)
                continue
            if self._state is _State.EOF:
                return None
            self.optopt = self._word
            raise self._fail(ParseErrorKind.UNKNOWN_OPTION)

        option = entry.option
        self.optopt = option.optstring

        if not self._exclusive_ok(entry):
            raise self._fail(ParseErrorKind.MUTUALLY_EXCLUSIVE)

        entry.count += 1
        if entry.group:
            self._groups |= 1 << (entry.group - 1)

        if self._state is _State.POSITIONAL:
            self.get_optarg(option.flags)
            self._positional_count += 1
            return option.value

        self._state_ctl(_Op.NEXT, 0)

        if option.flags & NARGS_MASK == 0:
            if self._state is _State.LONG_PARAMETER:
                raise self._fail(ParseErrorKind.TOO_MANY_ARGUMENTS)
            if self._state is _State.SHORT_PARAMETER:
                self._state_ctl(_Op.REWIND_SHORT_OPT, 0)
        else:
            self.get_optarg(option.flags)

        return option.value

    def get_optarg(self, flags: int = 0) -> Optional[str]:
        """Read an option argument; returns None if an optional one is absent."""
        self.optarg = None
        if not self._state_ctl(_Op.GETOPTARG, self.flags | flags):
            raise self._fail(ParseErrorKind.ARGUMENT_REQUIRED)
        return self.optarg

    def get_arg(self, flags: int = 0) -> Optional[str]:
        """Read the next positional word; returns None if an optional one is absent."""
        self.optarg = None
        if not self._state_ctl(_Op.GETARG, self.flags | flags):
            raise self._fail(ParseErrorKind.ARGUMENT_REQUIRED)
        return self.optarg

    def check_required(self) -> None:
        """Raise if any required option has not been seen."""
        for entry in self._entries:
            if entry.option.required and not entry.count:
                self.optopt = entry.option.optstring
                self.optarg = None
                raise self._fail(ParseErrorKind.ARGUMENT_REQUIRED)

    def at_end(self) -> bool:
        """Return True once every word of argv has been consumed."""
        return self._state_ctl(_Op.IS_EOF, 0)

    def explain_error(self, error: OptParseError) -> str:
        """Return a one-line description of ``error`` prefixed with the program name."""
        program = self.argv[0] if self.argv else ""
        return f"{program}: {_describe(error.kind, error.optopt, error.optarg)}"

    def __iter__(self) -> Iterator[int]:
        while (value := self.get_opt()) is not None:
            yield value
"""Actions performed on each invalid byte sequence."""

from dataclasses import dataclass
from typing import Type, Union

from .errors import InvalidSequenceError

REPLACEMENT_CHARACTER = "\uFFFD"


@dataclass(frozen=True)
class Ignore:
    """Drop the invalid bytes; ``has_errors`` is still set."""


@dataclass(frozen=True)
class Fail:
    """Raise ``error`` from the ``append`` or ``finalize`` call that hit the sequence.

    ``error`` may be an exception instance, raised as is, or an exception
    class, instantiated with a message naming the offending byte span.
    """

    error: Union[BaseException, Type[BaseException]] = InvalidSequenceError


@dataclass(frozen=True)
class Replace:
    """Put ``text`` in the decoded output at each invalid sequence."""

    text: str = REPLACEMENT_CHARACTER


InvalidSequencePolicy = Union[Ignore, Fail, Replace]

POLICY_NAMES = ("ignore", "replace", "strict", "fail")


def policy_from_name(name: str, replacement: str = REPLACEMENT_CHARACTER) -> InvalidSequencePolicy:
    """Return the policy for a codec-style error handler name."""
    if name == "ignore":
        return Ignore()
    if name == "replace":
        return Replace(replacement)
    if name in ("strict", "fail"):
        return Fail(InvalidSequenceError)
    raise ValueError(f"Unknown invalid-sequence policy: {name!r}")

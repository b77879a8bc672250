"""Core modules for streamed UTF-8 decoding."""

from .decoder import StreamedDecoder, StreamedUTF8Decoder  # noqa: F401
from .errors import InvalidSequenceError  # noqa: F401
from .event_log import DecodeEvent, DecodeEventLog  # noqa: F401
from .policy import Fail, Ignore, InvalidSequencePolicy, Replace, policy_from_name  # noqa: F401
from .stream import IncrementalDecoder, iter_decode  # noqa: F401

"""Streamed UTF-8 decoder tolerating chunk boundaries inside characters."""

from collections import deque
from typing import Deque, List, Optional, Protocol, Tuple

from .errors import InvalidSequenceError
from .event_log import DecodeEvent, DecodeEventLog
from .policy import Fail, Ignore, InvalidSequencePolicy, Replace

MAX_CODE_POINT = 0x10FFFF
RESERVED_NONCHARACTERS = (0xFFFE, 0xFFFF)
SURROGATE_FIRST, SURROGATE_LAST = 0xD800, 0xDFFF

# Smallest code point needing 2, 3 or 4 bytes; anything below is overlong.
MINIMUM_CODE_POINTS = {2: 0x80, 3: 0x800, 4: 0x10000}
_LEAD_PAYLOAD_MASKS = {2: 0b0001_1111, 3: 0b0000_1111, 4: 0b0000_0111}

# Number of most recent invalid-sequence spans a decoder remembers.
DEFAULT_MAX_ERROR_SPANS = 64


class StreamedDecoder(Protocol):
    """Decoder fed with consecutive chunks of one byte stream."""

    on_invalid_sequence: InvalidSequencePolicy

    @property
    def has_errors(self) -> bool:
        """True if any invalid sequence was found since the last reset."""
        ...

    def append(self, data: bytes) -> None:
        """Add bytes following the preceding data and decode what is complete."""
        ...

    def retrieve_decoded_text(self) -> str:
        """Return decoded text not retrieved before."""
        ...

    def finalize(self) -> None:
        """Resolve remaining undecoded bytes as one invalid sequence."""
        ...

    def reset(self) -> None:
        """Return to the initial state."""
        ...


def is_continuation_byte(byte: int) -> bool:
    return byte & 0b1100_0000 == 0b1000_0000  # 10xx_xxxx


def sequence_length(lead: int) -> Optional[int]:
    """Return the length announced by a lead byte, None for 5/6-byte forms."""
    if lead & 0b1000_0000 == 0b0000_0000:
        return 1
    if lead & 0b1110_0000 == 0b1100_0000:
        return 2
    if lead & 0b1111_0000 == 0b1110_0000:
        return 3
    if lead & 0b1111_1000 == 0b1111_0000:
        return 4
    return None


def next_lead_position(data: bytearray, position: int) -> Optional[int]:
    """Return the index of the first non-continuation byte after ``position``.

    None means the run of continuation bytes reaches the end of ``data`` and
    may still go on in the next chunk.
    """
    for index in range(position + 1, len(data)):
        if not is_continuation_byte(data[index]):
            return index
    return None


def decode_sequence(
    data: bytearray,
    position: int,
    length: int,
    allow_redundant_encoding: bool = False,
) -> Optional[int]:
    """Return the code point of the sequence at ``position``, None if invalid.

    ``data[position]`` must be a lead byte announcing ``length`` bytes and all
    of them must be present.
    """
    lead = data[position]
    if length == 1:
        return lead
    code_point = lead & _LEAD_PAYLOAD_MASKS[length]
    for byte in data[position + 1 : position + length]:
        if not is_continuation_byte(byte):
            return None
        code_point = (code_point << 6) | (byte & 0b0011_1111)
    if code_point > MAX_CODE_POINT or code_point in RESERVED_NONCHARACTERS:
        return None
    # Re-encoded surrogates are never accepted.
    if SURROGATE_FIRST <= code_point <= SURROGATE_LAST:
        return None
    if not allow_redundant_encoding and code_point < MINIMUM_CODE_POINTS[length]:
        return None
    return code_point


class StreamedUTF8Decoder:
    """Decode UTF-8 arriving in chunks that may split characters.

    Bytes of an incomplete trailing sequence stay pending until the next
    ``append`` or ``finalize``. Each invalid sequence is reported once through
    ``on_invalid_sequence``; continuation bytes following it are skipped up to
    the next lead byte.

    A ``Fail`` policy raises from inside ``append`` without rolling back. Text
    decoded before the failure stays retrievable and the offending bytes are
    dropped; ``append(b"")`` resumes with the bytes after them.
    """

    def __init__(
        self,
        on_invalid_sequence: Optional[InvalidSequencePolicy] = None,
        allow_redundant_encoding: bool = False,
        event_log: Optional[DecodeEventLog] = None,
        max_error_spans: int = DEFAULT_MAX_ERROR_SPANS,
    ) -> None:
        self.on_invalid_sequence = Ignore() if on_invalid_sequence is None else on_invalid_sequence
        self.allow_redundant_encoding = allow_redundant_encoding
        self.event_log = event_log
        self._pending = bytearray()
        self._decoded: List[str] = []
        self._errors: Deque[Tuple[int, int]] = deque(maxlen=max_error_spans)
        self._error_count = 0
        self._has_errors = False
        self._offset = 0

    @property
    def on_invalid_sequence(self) -> InvalidSequencePolicy:
        return self._policy

    @on_invalid_sequence.setter
    def on_invalid_sequence(self, policy: InvalidSequencePolicy) -> None:
        if not isinstance(policy, (Ignore, Fail, Replace)):
            raise TypeError(f"Unsupported invalid-sequence policy: {policy!r}")
        self._policy = policy

    @property
    def has_errors(self) -> bool:
        return self._has_errors

    @property
    def error_count(self) -> int:
        """Number of invalid sequences found since the last reset."""
        return self._error_count

    @property
    def errors(self) -> List[Tuple[int, int]]:
        """Byte spans of the most recent invalid sequences, oldest first.

        At most ``max_error_spans`` spans are kept; ``error_count`` has the total.
        """
        return list(self._errors)

    @property
    def pending_bytes(self) -> bytes:
        return bytes(self._pending)

    def append(self, data: bytes) -> None:
        self._pending += data
        self._decode()

    def retrieve_decoded_text(self) -> str:
        text = "".join(self._decoded)
        self._decoded.clear()
        return text

    def finalize(self) -> None:
        if not self._pending:
            return
        leftover = bytes(self._pending)
        start = self._offset
        self._pending.clear()
        self._offset += len(leftover)
        self._record(DecodeEvent("finalize", sequence=leftover))
        self._invalid_sequence(start, self._offset, leftover)

    def reset(self) -> None:
        self._pending.clear()
        self._decoded.clear()
        self._errors.clear()
        self._error_count = 0
        self._has_errors = False
        self._offset = 0
        self._record(DecodeEvent("reset"))

    def _decode(self) -> None:
        data = self._pending
        position = 0
        segment: List[str] = []
        try:
            while position < len(data):
                lead = data[position]
                if is_continuation_byte(lead):
                    resume = next_lead_position(data, position)
                else:
                    length = sequence_length(lead)
                    if length is None:
                        resume = position + 1
                    elif position + length > len(data):
                        break
                    else:
                        code_point = decode_sequence(
                            data, position, length, self.allow_redundant_encoding
                        )
                        if code_point is not None:
                            segment.append(chr(code_point))
                            position += length
                            continue
                        resume = next_lead_position(data, position)
                if resume is None:
                    break
                self._flush(segment)
                start, position = position, resume
                self._invalid_sequence(
                    self._offset + start,
                    self._offset + position,
                    bytes(data[start:position]),
                )
        finally:
            self._flush(segment)
            del data[:position]
            self._offset += position

    def _flush(self, segment: List[str]) -> None:
        if segment:
            self._decoded.append("".join(segment))
            segment.clear()

    def _invalid_sequence(self, start: int, end: int, sequence: bytes) -> None:
        self._has_errors = True
        self._error_count += 1
        self._errors.append((start, end))
        self._record(DecodeEvent("invalid-sequence", start, end, sequence))
        policy = self._policy
        if isinstance(policy, Replace):
            self._decoded.append(policy.text)
        elif isinstance(policy, Fail):
            raise self._failure(policy, start, end)

    @staticmethod
    def _failure(policy: Fail, start: int, end: int) -> BaseException:
        error = policy.error
        if not isinstance(error, type):
            return error
        message = f"Invalid UTF-8 sequence at bytes [{start}, {end})"
        if issubclass(error, InvalidSequenceError):
            return error(message, start, end)
        return error(message)

    def _record(self, event: DecodeEvent) -> None:
        if self.event_log is not None:
            self.event_log.record(event)

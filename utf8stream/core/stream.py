"""Generator and ``codecs`` adapters around the streamed decoder."""

import codecs
from typing import Any, Iterable, Iterator, Optional, Tuple

from .decoder import StreamedDecoder, StreamedUTF8Decoder
from .policy import policy_from_name


def iter_decode(
    chunks: Iterable[bytes],
    decoder: Optional[StreamedDecoder] = None,
    **options: Any,
) -> Iterator[str]:
    """Yield text decoded from ``chunks``, finalizing once they run out.

    Without ``decoder`` a new ``StreamedUTF8Decoder`` is built from
    ``options``. Empty fragments are not yielded.
    """
    if decoder is None:
        decoder = StreamedUTF8Decoder(**options)
    elif options:
        raise TypeError("decoder options cannot be combined with an existing decoder")
    for chunk in chunks:
        decoder.append(chunk)
        text = decoder.retrieve_decoded_text()
        if text:
            yield text
    decoder.finalize()
    tail = decoder.retrieve_decoded_text()
    if tail:
        yield tail


class IncrementalDecoder(codecs.IncrementalDecoder):
    """``codecs.IncrementalDecoder`` backed by ``StreamedUTF8Decoder``.

    ``errors`` is ``"strict"``, ``"replace"`` or ``"ignore"``; strict mode
    raises ``InvalidSequenceError``. Assigning ``errors`` later switches the
    policy from the next ``decode`` call on.
    """

    def __init__(self, errors: str = "strict", allow_redundant_encoding: bool = False) -> None:
        super().__init__(errors)
        self._decoder = StreamedUTF8Decoder(
            on_invalid_sequence=policy_from_name(errors),
            allow_redundant_encoding=allow_redundant_encoding,
        )
        self._policy_name = errors

    @property
    def decoder(self) -> StreamedUTF8Decoder:
        return self._decoder

    def decode(self, input: bytes, final: bool = False) -> str:
        if self.errors != self._policy_name:
            self._decoder.on_invalid_sequence = policy_from_name(self.errors)
            self._policy_name = self.errors
        self._decoder.append(input)
        if final:
            self._decoder.finalize()
        return self._decoder.retrieve_decoded_text()

    def reset(self) -> None:
        self._decoder.reset()

    def getstate(self) -> Tuple[bytes, int]:
        return self._decoder.pending_bytes, 0

    def setstate(self, state: Tuple[bytes, int]) -> None:
        self._decoder.reset()
        self._decoder.append(state[0])

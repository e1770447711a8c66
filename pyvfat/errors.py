"""
Exceptions raised while decoding GEM/VFAT2 token streams.

All decode failures derive from DecodeError (itself a ValueError, which is
what the rest of the code base raises for bad data). EndOfStream is kept
apart: running out of tokens between events is the normal way a stream ends.
"""


class EndOfStream(Exception):
    """No more tokens are available in the stream."""


class DecodeError(ValueError):
    """Base class for every failure that aborts a decode cycle."""


class StreamFault(DecodeError):
    """The underlying stream failed (I/O error or a previously poisoned reader)."""


class TruncatedFrame(DecodeError):
    """A frame was started but the stream ended before it was complete."""


class MalformedToken(DecodeError):
    """A token could not be parsed as the requested type."""


class MalformedHeader(DecodeError):
    """The threshold scan header does not describe a valid binning."""


class UnreasonableCount(DecodeError):
    """A decoded sub-frame count exceeds the configured sanity bound."""

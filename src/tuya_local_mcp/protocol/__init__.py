"""Protocol layer: message framing, payload cipher, command builders, and response parsing."""

from .cipher import TuyaCipher, sign
from .commands import Command, SetByIndex, SetDefault, SetMap, build_control, build_query
from .framing import Frame, decode_frame, encode_frame

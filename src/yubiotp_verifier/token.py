"""
Token parsing: split raw keyboard input into password and Yubico OTP.
"""

import re

from .models import ParsedToken

# Modhex alphabet emitted by the key on a US QWERTY layout
MODHEX = "cbdefghijklnrtuv"

# The same key codes as typed on a Dvorak layout, position for position
DVORAK = "jxe.uidchtnbpygk"

_FROM_DVORAK = str.maketrans(DVORAK, MODHEX)

DEFAULT_DELIMITER = "[:]"


def _token_pattern(alphabet: str, delimiter: str) -> re.Pattern[str]:
    chars = re.escape(alphabet)
    return re.compile(
        rf"^((.*){delimiter})?(([{chars}]{{0,16}})([{chars}]{{32}}))$",
        re.IGNORECASE,
    )


def parse_token(raw: str, delimiter: str = DEFAULT_DELIMITER) -> ParsedToken | None:
    """
    Parse input into password, device prefix and ciphertext.

    The OTP is a prefix of 0-16 modhex characters followed by exactly 32
    modhex characters of ciphertext, optionally preceded by a password and a
    delimiter. Input typed on a Dvorak layout is recognised and translated
    back to modhex.

    Args:
        raw: Input string to parse
        delimiter: Regular expression fragment separating password and OTP

    Returns:
        ParsedToken, or None if the input matches neither alphabet

    Examples:
        >>> parse_token("secret:" + "c" * 12 + "v" * 32).password
        'secret'
        >>> parse_token("not an otp") is None
        True
    """
    match = _token_pattern(MODHEX, delimiter).match(raw)
    if match:
        return ParsedToken(
            password=match.group(2),
            prefix=match.group(4),
            ciphertext=match.group(5),
        )

    # Dvorak?
    match = _token_pattern(DVORAK, delimiter).match(raw)
    if not match:
        return None

    return ParsedToken(
        password=match.group(2),
        prefix=match.group(4).lower().translate(_FROM_DVORAK),
        ciphertext=match.group(5).lower().translate(_FROM_DVORAK),
    )

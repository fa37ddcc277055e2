"""Public certificate identifiers.

Format: ``<PREFIX>-<random body>-<check character>``, e.g.
``CERT-7KQ2M9XH4TBW3ZPC-R``.

The body is drawn from an alphabet without visually ambiguous characters
and the check character is a Luhn mod 32 digit over the body, so a
mistyped character is rejected before any lookup.
"""

import re
import secrets
import string


# Alphabet excludes ambiguous characters (0, O, 1, I)
ID_ALPHABET = string.ascii_uppercase.replace("O", "").replace(
    "I", ""
) + string.digits.replace("0", "").replace("1", "")
# Result: ABCDEFGHJKLMNPQRSTUVWXYZ23456789 (32 characters)

ID_BODY_LENGTH = 16

_ID_PATTERN = re.compile(
    rf"^(?P<prefix>[A-Z0-9]+)-(?P<body>[{ID_ALPHABET}]{{{ID_BODY_LENGTH}}})"
    rf"-(?P<check>[{ID_ALPHABET}])$"
)


def _luhn_sum(chars: str, double_first: bool) -> int:
    """Luhn mod N sum, walking ``chars`` right to left."""
    base = len(ID_ALPHABET)
    total = 0
    factor = 2 if double_first else 1
    for char in reversed(chars):
        addend = factor * ID_ALPHABET.index(char)
        total += addend // base + addend % base
        factor = 1 if factor == 2 else 2
    return total


def check_character(body: str) -> str:
    """Check character of an id body.

    Args:
        body: Characters from ID_ALPHABET

    Returns:
        Single character from ID_ALPHABET
    """
    base = len(ID_ALPHABET)
    remainder = _luhn_sum(body, double_first=True) % base
    return ID_ALPHABET[(base - remainder) % base]


def generate_certificate_id(prefix: str = "CERT") -> str:
    """Generate a new public certificate id (80 random bits)."""
    body = "".join(secrets.choice(ID_ALPHABET) for _ in range(ID_BODY_LENGTH))
    return f"{prefix.upper()}-{body}-{check_character(body)}"


def normalize_certificate_id(certificate_id: str) -> str:
    return certificate_id.strip().upper()


def is_valid_certificate_id(certificate_id: str) -> bool:
    """True if the id is well formed and its check character matches.

    Any prefix is accepted so ids issued under an earlier prefix stay valid.
    """
    match = _ID_PATTERN.match(normalize_certificate_id(certificate_id))
    if match is None:
        return False
    body, check = match.group("body"), match.group("check")
    return _luhn_sum(body + check, double_first=False) % len(ID_ALPHABET) == 0

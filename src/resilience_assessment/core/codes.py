"""Assessment access codes: generation, normalisation, and token hashing.

Respondents reach an assessment either with a short human-readable code
(``RES-XXXX-XXXX``) or with a URL token (``res_tk_<random>``). Tokens are
never stored; only their SHA-256 hash is, and lookups hash the input.
"""

import hashlib
import re
import secrets

# No easily confused characters (0/O, 1/I/L)
CODE_CHARS = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"

DEFAULT_CODE_PREFIX = "RES"
DEFAULT_TOKEN_PREFIX = "res_tk_"

_WHITESPACE = re.compile(r"\s")


def hash_value(value: str) -> str:
    """Return the hex SHA-256 digest of a token or IP address."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def generate_short_code(prefix: str = DEFAULT_CODE_PREFIX) -> str:
    """Generate a short code of the form ``<prefix>-XXXX-XXXX``."""
    segments = (
        "".join(secrets.choice(CODE_CHARS) for _ in range(4)) for _ in range(2)
    )
    return "-".join([prefix, *segments])


def generate_token(prefix: str = DEFAULT_TOKEN_PREFIX, nbytes: int = 24) -> str:
    """Generate a URL-safe access token of the form ``<prefix><random>``."""
    return f"{prefix}{secrets.token_urlsafe(nbytes)}"


def is_token(raw_input: str, prefix: str = DEFAULT_TOKEN_PREFIX) -> bool:
    """Whether the input is a URL token rather than a short code."""
    return raw_input.startswith(prefix)


def normalize_code(raw_input: str) -> str:
    """Upper-case a short code and strip all whitespace from it."""
    return _WHITESPACE.sub("", raw_input.upper())


def access_link(base_url: str, token: str) -> str:
    """Build the direct assessment link for a token."""
    return f"{base_url.rstrip('/')}/assess/{token}"

"""
Domain input parsing and query-name encoding.

Domains are stored exactly as the user typed them (case-sensitive, no
normalization). Only the name sent to the resolver is converted to its
ASCII form when it contains international characters.
"""

import re

import idna

from dns_reconciler.enums import DoHErrorCode
from dns_reconciler.exceptions import ValidationError


# Separator between domains in a batch input
INPUT_SEPARATOR = ","

# Characters that can never appear in a DNS query name
FORBIDDEN_CHARS_PATTERN = re.compile(
    r'[\x00-\x1f\x7f'           # Control characters
    r'\s'                        # Whitespace
    r'!@#$%^&*()+=\[\]{}|\\:;"\'<>,?/`~]'
)


def parse_domain_input(raw_input: str) -> list[str]:
    """
    Split a comma-separated batch of domains.

    Tokens are trimmed and empty tokens dropped. Order and repeats are
    preserved; duplicate handling is the caller's job.

    Args:
        raw_input: Text as entered by the user, e.g. "a.com, b.com"

    Returns:
        List of non-empty domain tokens
    """
    if not raw_input:
        return []
    tokens = (token.strip() for token in raw_input.split(INPUT_SEPARATOR))
    return [token for token in tokens if token]


def to_query_name(domain: str) -> str:
    """
    Convert a stored domain into the name sent to the resolver.

    ASCII names are passed through unchanged. Names with international
    characters are IDNA-encoded (UTS #46 mapping).

    Args:
        domain: Domain as stored

    Returns:
        ASCII query name

    Raises:
        ValidationError: If the name is empty, contains forbidden characters,
            or cannot be IDNA-encoded
    """
    name = domain.strip()
    if not name:
        raise ValidationError(
            code=DoHErrorCode.INVALID_NAME.value,
            message="Domain is empty",
            details={"domain": domain},
        )

    if FORBIDDEN_CHARS_PATTERN.search(name):
        raise ValidationError(
            code=DoHErrorCode.INVALID_NAME.value,
            message="Domain contains forbidden characters",
            details={
                "domain": domain,
                "forbidden_chars": FORBIDDEN_CHARS_PATTERN.findall(name),
            },
        )

    if all(ord(c) < 128 for c in name):
        return name

    try:
        return idna.encode(name, uts46=True).decode("ascii")
    except idna.IDNAError as e:
        raise ValidationError(
            code=DoHErrorCode.INVALID_NAME.value,
            message=f"IDNA encoding failed: {e}",
            details={"domain": domain, "idna_error": str(e)},
        )

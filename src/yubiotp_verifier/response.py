"""
Parsing, signature checking and classification of validation responses.
"""

from __future__ import annotations

import hmac
import re
from collections import Counter
from typing import TYPE_CHECKING, Sequence

import structlog

from .errors import ParameterNotFound
from .models import Classification, Verdict
from .request import sign

if TYPE_CHECKING:
    from .models import VerificationResult

logger = structlog.get_logger(__name__)

STATUS_PATTERN = re.compile(r"[A-Za-z0-9_]+")

# Fields covered by the response signature, in signing order
SIGNED_FIELDS = (
    "nonce",
    "otp",
    "sessioncounter",
    "sessionuse",
    "sl",
    "status",
    "t",
    "timeout",
    "timestamp",
)

SIGNED_FIELDS_AND_SIGNATURE = frozenset(SIGNED_FIELDS) | {"h"}

DEFAULT_PARAMETERS = ("timestamp", "sessioncounter", "sessionuse")

STATUS_VERDICTS = {
    "OK": Verdict.VALID,
    "REPLAYED_OTP": Verdict.REPLAYED,
}


def parse_lines(body: str) -> list[tuple[str, str]]:
    """
    Split a response body into (field, value) pairs, in body order.

    Each line is split on its first `=` only, since base64 values such as
    the signature may themselves contain `=`. Lines without `=` are skipped.
    """
    pairs: list[tuple[str, str]] = []
    for line in body.strip().splitlines():
        name, sep, value = line.partition("=")
        if sep:
            pairs.append((name, value))
    return pairs


def parse_fields(body: str) -> dict[str, str]:
    """
    Parse a response body into a field mapping.

    Examples:
        >>> parse_fields("h=abc=\\r\\nstatus=OK\\r\\n")
        {'h': 'abc=', 'status': 'OK'}
    """
    return dict(parse_lines(body))


def duplicated_fields(body: str) -> set[str]:
    """Names of the fields that appear on more than one line."""
    counts = Counter(name for name, _ in parse_lines(body))
    return {name for name, count in counts.items() if count > 1}


def response_check_string(fields: dict[str, str]) -> str:
    """Canonical string a server signs: the signed fields present, sorted."""
    return "&".join(
        f"{name}={fields[name]}" for name in sorted(SIGNED_FIELDS) if name in fields
    )


def verify_signature(fields: dict[str, str], key: bytes) -> bool:
    """Check the `h` field of a parsed response against `key`."""
    received = fields.get("h")
    if not received:
        return False
    expected = sign(response_check_string(fields), key)
    return hmac.compare_digest(expected.encode("ascii"), received.encode("utf-8"))


def classify(
    body: str,
    *,
    otp: str,
    nonce: str,
    key: bytes = b"",
    url: str = "",
) -> Classification:
    """
    Classify one response body for the race.

    There are three cases once a status is found:

    1. The otp or nonce does not match the request: the body is ignored.
    2. A key is configured: the signature must match, then the status counts.
    3. No key is configured: the status counts directly.

    The status is read from the same parsed fields the signature covers. A
    body repeating any signed field (or `h`) is ambiguous and never
    classified. Only OK and REPLAYED_OTP are decisive; other statuses are
    recorded on the classification without a verdict.
    """
    result = Classification(url=url)

    fields = parse_fields(body)
    status = fields.get("status", "")
    if not STATUS_PATTERN.fullmatch(status):
        logger.debug("Response without status", url=url)
        return result
    result.status = status

    repeated = duplicated_fields(body) & SIGNED_FIELDS_AND_SIGNATURE
    if repeated:
        logger.warning(
            "Ignoring response with repeated fields",
            url=url,
            fields=sorted(repeated),
        )
        return result

    if fields.get("otp") != otp or fields.get("nonce") != nonce:
        logger.warning(
            "Ignoring response not matching request",
            url=url,
            status=result.status,
        )
        return result
    result.relevant = True

    if key:
        result.signature_ok = verify_signature(fields, key)
        if not result.signature_ok:
            logger.warning(
                "Ignoring response with invalid signature",
                url=url,
                status=result.status,
            )
            return result

    result.verdict = STATUS_VERDICTS.get(result.status)
    return result


def get_parameters(
    body: str,
    names: Sequence[str] | None = None,
    result: VerificationResult | None = None,
) -> dict[str, str]:
    """
    Extract numeric fields from a response body.

    Only whole `name=digits` lines count. In a single response a field that
    appears more than once is rejected; in the tagged output of a
    wait-for-all call the first response carrying the field wins.

    Args:
        body: Response body (typically VerificationResult.response)
        names: Field names to extract.
            Default: timestamp, sessioncounter, sessionuse
        result: Attached to the error if a field is missing

    Returns:
        Mapping of field name to its digits

    Raises:
        ParameterNotFound: If a field is absent, repeated or not numeric
    """
    if not names:
        names = DEFAULT_PARAMETERS
    body = body or ""
    repeated = set() if body.startswith("URL=") else duplicated_fields(body)

    values: dict[str, str] = {}
    for name in names:
        if name in repeated:
            raise ParameterNotFound(
                f'Parameter "{name}" appears more than once in response.',
                result=result,
            )
        match = re.search(rf"^{re.escape(name)}=([0-9]+)\r?$", body, re.MULTILINE)
        if not match:
            raise ParameterNotFound(
                f'Could not parse parameter "{name}" from response.',
                result=result,
            )
        values[name] = match.group(1)
    return values

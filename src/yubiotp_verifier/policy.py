"""
Decision policy folding per-response classifications into a verdict.
"""

from typing import Sequence

from .models import Classification, Verdict


def decide(
    classifications: Sequence[Classification],
    responses_received: int,
) -> tuple[Verdict, str | None]:
    """
    Combine classifications into the final verdict and its status token.

    A replay is authoritative over any OK. Without a decisive answer, a
    checked non-OK status (e.g. NO_SUCH_CLIENT) is reported as a server error;
    anything else is reported as no decisive answer, or as a transport
    failure when no body arrived at all.
    """
    verdicts = {c.verdict for c in classifications}
    if Verdict.REPLAYED in verdicts:
        return Verdict.REPLAYED, "REPLAYED_OTP"
    if Verdict.VALID in verdicts:
        return Verdict.VALID, "OK"

    if responses_received == 0:
        return Verdict.TRANSPORT_FAILURE, None

    checked = [c.status for c in classifications if c.checked and c.status]
    if checked:
        return Verdict.SERVER_ERROR, checked[-1]

    seen = [c.status for c in classifications if c.status]
    return Verdict.NO_DECISIVE_ANSWER, seen[-1] if seen else None

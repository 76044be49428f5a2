"""
Detection of silently truncated reads.

A read is truncated when the service reported more matching features than
were returned, unless the caller capped the read below that total. An
unknown total is never treated as truncation.
"""

import logging
import warnings
from typing import Optional

from .exceptions import TruncationWarning
from .models import TruncationVerdict

logger = logging.getLogger(__name__)


def detect_truncation(
    actual_returned: int,
    expected_total: Optional[int] = None,
    max_features: Optional[int] = None,
) -> TruncationVerdict:
    """
    Compare returned features against the service-reported total.

    Args:
        actual_returned: Number of features the read produced.
        expected_total: Total reported by the service, or None if unknown.
        max_features: The caller's explicit cap, if any.

    Returns:
        TruncationVerdict. ``truncated`` is True only when the reported
        total exceeds what was returned and ``max_features`` was not set
        below that total.
    """
    if expected_total is None or expected_total < 0:
        return TruncationVerdict(
            expected_total=None,
            actual_returned=actual_returned,
            truncated=False,
        )

    # An explicit cap below the total asked for a subset
    if max_features is not None and max_features < expected_total:
        truncated = False
    else:
        truncated = expected_total > actual_returned

    return TruncationVerdict(
        expected_total=expected_total,
        actual_returned=actual_returned,
        truncated=truncated,
    )


def report_truncation(verdict: TruncationVerdict, layer: str) -> None:
    """
    Surface a truncated verdict as a log warning and a TruncationWarning.

    Does nothing for verdicts that are not truncated.

    Args:
        verdict: Verdict from detect_truncation.
        layer: Layer name used in the message.
    """
    if not verdict.truncated:
        return

    message = (
        f"Layer '{layer}' returned {verdict.actual_returned:,} of "
        f"{verdict.expected_total:,} features reported by the service; "
        "the result is incomplete. Try a smaller page_size, or set "
        "max_features to request an explicit subset."
    )
    logger.warning(message)
    warnings.warn(message, TruncationWarning, stacklevel=3)

"""
ResultExtractor — turns the terminal authorization URL into an AuthOutcome.

Default extraction flattens the query string and the fragment into one
mapping.  The fragment is applied last so it wins on key collisions: for
implicit-flow providers the fragment is the canonical channel.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Dict, Optional
from urllib.parse import parse_qsl, urlsplit

from utils.errors import ExtractionError
from utils.schemas import AuthFailure, AuthOutcome, AuthSuccess, FailureKind, ParamsExtractor

logger = logging.getLogger(__name__)


def default_extract(url: str) -> Dict[str, str]:
    """Merge query and fragment parameters of *url* (fragment wins)."""
    parts = urlsplit(url)
    result: Dict[str, str] = {}
    for key, value in parse_qsl(parts.query, keep_blank_values=True):
        result[key] = value
    if parts.fragment:
        for key, value in parse_qsl(parts.fragment, keep_blank_values=True):
            result[key] = value
    return result


def extract_params(url: str, extractor: Optional[ParamsExtractor] = None) -> Dict[str, Any]:
    """
    Extract the authorization result from *url*.

    A custom *extractor* receives the parsed URL and its mapping is used
    verbatim.

    Raises
    ------
    ExtractionError – the custom extractor raised or returned a non-mapping
    """
    if extractor is None:
        return default_extract(url)

    try:
        result = extractor(urlsplit(url))
    except Exception as exc:
        raise ExtractionError(exc) from exc

    if not isinstance(result, Mapping):
        raise ExtractionError(
            f"extractor returned {type(result).__name__}, expected a mapping"
        )
    return dict(result)


def build_outcome(data: Dict[str, Any]) -> AuthOutcome:
    """``error`` in the result means the provider refused; anything else is success."""
    error = data.get("error")
    if error:
        reason = data.get("error_description") or error
        return AuthFailure(reason=str(reason), kind=FailureKind.PROVIDER_ERROR)
    return AuthSuccess(data=data)


def outcome_from_url(url: str, extractor: Optional[ParamsExtractor] = None) -> AuthOutcome:
    """Extract and classify in one step; never raises."""
    try:
        data = extract_params(url, extractor)
        logger.debug("Extracted authorization result keys: %s", list(data))
        return build_outcome(data)
    except ExtractionError as exc:
        logger.warning("Authorization result extraction failed: %s", exc)
        return AuthFailure(reason=exc.message, kind=exc.kind)
    except Exception as exc:
        # e.g. a custom mapping the outcome model rejects (non-string keys)
        error = ExtractionError(exc)
        logger.warning("Authorization result extraction failed: %s", error)
        return AuthFailure(reason=error.message, kind=error.kind)

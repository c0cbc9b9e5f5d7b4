"""
Tests for authorization result extraction.
"""

import pytest

from core.result_extractor import build_outcome, default_extract, extract_params, outcome_from_url
from utils.errors import ExtractionError
from utils.schemas import AuthFailure, AuthSuccess, FailureKind

HOST = "https://host"


class TestDefaultExtraction:
    def test_query_parameters(self):
        assert default_extract(f"{HOST}/cb?code=abc123&state=xyz") == {
            "code": "abc123",
            "state": "xyz",
        }

    def test_fragment_parameters(self):
        assert default_extract(f"{HOST}/cb#access_token=tok&token_type=bearer") == {
            "access_token": "tok",
            "token_type": "bearer",
        }

    def test_fragment_wins_on_collision(self):
        data = default_extract(f"{HOST}/cb?state=from-query&code=q#state=from-fragment")
        assert data == {"state": "from-fragment", "code": "q"}

    def test_plus_and_percent_decoding(self):
        data = default_extract(f"{HOST}/cb?error_description=User+denied%21")
        assert data["error_description"] == "User denied!"

    def test_blank_values_kept(self):
        assert default_extract(f"{HOST}/cb?code=abc&state=") == {"code": "abc", "state": ""}


class TestCustomExtractor:
    def test_receives_parsed_url(self):
        seen = []

        def extractor(url):
            seen.append(url)
            return {"path": url.path}

        assert extract_params(f"{HOST}/cb?code=abc", extractor) == {"path": "/cb"}
        assert seen[0].netloc == "host"
        assert seen[0].query == "code=abc"

    def test_raising_extractor(self):
        def extractor(url):
            raise ValueError("no code")

        with pytest.raises(ExtractionError, match="no code"):
            extract_params(f"{HOST}/cb", extractor)

    def test_non_mapping_result(self):
        with pytest.raises(ExtractionError, match="expected a mapping"):
            extract_params(f"{HOST}/cb?code=abc", lambda url: ["abc"])


class TestOutcome:
    def test_success(self):
        assert outcome_from_url(f"{HOST}/cb?code=abc123&state=xyz") == AuthSuccess(
            data={"code": "abc123", "state": "xyz"}
        )

    def test_error_description_preferred(self):
        outcome = outcome_from_url(f"{HOST}/cb?error=access_denied&error_description=User+denied")
        assert outcome == AuthFailure(reason="User denied", kind=FailureKind.PROVIDER_ERROR)

    def test_raw_error_without_description(self):
        outcome = build_outcome({"error": "access_denied"})
        assert outcome.reason == "access_denied"

    def test_custom_result_with_error(self):
        outcome = outcome_from_url(f"{HOST}/cb", lambda url: {"error": "nope"})
        assert outcome == AuthFailure(reason="nope", kind=FailureKind.PROVIDER_ERROR)

    def test_extraction_failure_becomes_outcome(self):
        def extractor(url):
            raise KeyError("code")

        outcome = outcome_from_url(f"{HOST}/cb", extractor)
        assert outcome.kind == FailureKind.EXTRACTION_FAILURE
        assert not outcome.ok

    def test_unrepresentable_custom_result_becomes_outcome(self):
        outcome = outcome_from_url(f"{HOST}/cb?code=abc", lambda url: {1: "x"})
        assert outcome.kind == FailureKind.EXTRACTION_FAILURE
        assert outcome.reason.startswith("Failed to extract authorization result")

import logging
import warnings

import pytest

from readwfs.acquisition.exceptions import TruncationWarning
from readwfs.acquisition.models import TruncationVerdict
from readwfs.acquisition.truncation import detect_truncation, report_truncation


def test_fewer_features_than_reported_is_truncated():
    verdict = detect_truncation(1000, expected_total=5000)
    assert verdict == TruncationVerdict(expected_total=5000, actual_returned=1000, truncated=True)


def test_matching_counts_are_not_truncated():
    assert not detect_truncation(1000, expected_total=1000).truncated


def test_unknown_total_is_not_truncated():
    verdict = detect_truncation(1000, expected_total=None)
    assert not verdict.truncated
    assert verdict.expected_total is None


def test_negative_total_is_treated_as_unknown():
    verdict = detect_truncation(10, expected_total=-1)
    assert not verdict.truncated
    assert verdict.expected_total is None


def test_explicit_cap_accounts_for_the_gap():
    assert not detect_truncation(100, expected_total=5000, max_features=100).truncated


def test_cap_below_total_is_never_truncated():
    assert not detect_truncation(100, expected_total=5000, max_features=500).truncated
    verdict = detect_truncation(1000, expected_total=3400, max_features=2500)
    assert verdict == TruncationVerdict(expected_total=3400, actual_returned=1000, truncated=False)


def test_cap_larger_than_total_compares_against_total():
    assert not detect_truncation(300, expected_total=300, max_features=1000).truncated
    assert detect_truncation(200, expected_total=300, max_features=1000).truncated


def test_report_truncation_warns_with_counts(caplog):
    verdict = detect_truncation(1000, expected_total=5000)

    with caplog.at_level(logging.WARNING):
        with pytest.warns(TruncationWarning) as record:
            report_truncation(verdict, "ns:parcels")

    message = str(record[0].message)
    assert "ns:parcels" in message
    assert "1,000 of 5,000" in message
    assert "page_size" in message
    assert "ns:parcels" in caplog.text


def test_report_truncation_silent_when_complete():
    verdict = detect_truncation(1000, expected_total=1000)

    with warnings.catch_warnings():
        warnings.simplefilter("error", TruncationWarning)
        report_truncation(verdict, "ns:parcels")

"""
Unit tests for drishti CLI parsing helper functions

Validates CLI argument parsing utilities: output numbers, normalized ranges,
comma-separated lists and worker counts.

"""

import argparse

import pytest
from drishti.cli import parse_list_arg, parse_norm_range, parse_output_numbers, positive_int
from drishti.ranges import prep_ranges
from drishti.types import NormalizedRange


# ──────────────────────────────────────────────────────────────
# Output numbers parsing
# ──────────────────────────────────────────────────────────────

def test_parse_output_numbers_single():
    assert parse_output_numbers("5") == [5]


def test_parse_output_numbers_range():
    assert parse_output_numbers("2-4") == [2, 3, 4]


def test_parse_output_numbers_list():
    assert parse_output_numbers("1,3,7") == [1, 3, 7]


def test_parse_output_numbers_mixed_drops_duplicates():
    assert parse_output_numbers("1, 4-6,5,9") == [1, 4, 5, 6, 9]


@pytest.mark.parametrize("bad", ["4-2", "a", "1,b", "-3", " , "])
def test_parse_output_numbers_invalid(bad):
    with pytest.raises(argparse.ArgumentTypeError):
        parse_output_numbers(bad)


# ──────────────────────────────────────────────────────────────
# Normalized range parsing
# ──────────────────────────────────────────────────────────────

def test_parse_norm_range_valid():
    assert parse_norm_range("0.2:0.8") == (0.2, 0.8)


def test_parse_norm_range_open_sides_are_none():
    assert parse_norm_range(":0.6") == (None, 0.6)
    assert parse_norm_range("0.4:") == (0.4, None)
    assert parse_norm_range(":") == (None, None)


def test_open_norm_range_keeps_parent_extent(amr_info):
    parent = NormalizedRange(0.1, 0.9, 0.0, 1.0, 0.0, 1.0)
    r = prep_ranges(amr_info, xrange=parse_norm_range(":"), yrange=parse_norm_range("0.4:"), dataranges=parent)
    assert r.axis("x") == (0.1, 0.9)
    assert r.axis("y") == (0.4, 1.0)


def test_parse_norm_range_empty():
    assert parse_norm_range(None) == (None, None)
    assert parse_norm_range("  ") == (None, None)


@pytest.mark.parametrize("bad", ["0.5", "0.8:0.2", "0:1.5", "x:1"])
def test_parse_norm_range_invalid(bad):
    with pytest.raises(argparse.ArgumentTypeError):
        parse_norm_range(bad)


# ──────────────────────────────────────────────────────────────
# List and integer arguments
# ──────────────────────────────────────────────────────────────

def test_parse_list_arg_none():
    assert parse_list_arg(None) is None
    assert parse_list_arg(" , ") is None


def test_parse_list_arg_valid():
    assert parse_list_arg("sd, rho") == ["sd", "rho"]


def test_positive_int():
    assert positive_int("4") == 4
    with pytest.raises(argparse.ArgumentTypeError):
        positive_int("0")
    with pytest.raises(argparse.ArgumentTypeError):
        positive_int("four")

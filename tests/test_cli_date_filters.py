"""Tests for CLI date filter helper."""

from datetime import date

import click
import pytest

from pocketbook.cli.date_filters import resolve_cli_date_range
from pocketbook.utils.date_parser import get_date_range


def _ctx() -> click.Context:
    return click.Context(click.Command("test"))


def test_resolve_cli_date_range_rejects_period_with_start_end(capsys):
    with pytest.raises(click.exceptions.Exit) as excinfo:
        resolve_cli_date_range(
            _ctx(),
            start_date="01/01/2024",
            end_date=None,
            period="this-month",
        )

    assert excinfo.value.exit_code == 1
    err = capsys.readouterr().err
    assert "cannot be combined" in err


def test_resolve_cli_date_range_returns_period_range():
    assert resolve_cli_date_range(
        _ctx(), start_date=None, end_date=None, period="last-month"
    ) == get_date_range("last-month")


def test_resolve_cli_date_range_parses_explicit_dates():
    start, end = resolve_cli_date_range(
        _ctx(),
        start_date="02/01/2024",
        end_date="05/01/2024",
        period=None,
    )

    assert start == date(2024, 1, 2)
    assert end == date(2024, 1, 5)


def test_resolve_cli_date_range_open_ended():
    assert resolve_cli_date_range(_ctx(), start_date=None, end_date=None, period=None) == (
        None,
        None,
    )


def test_resolve_cli_date_range_invalid_start_date(capsys):
    with pytest.raises(click.exceptions.Exit) as excinfo:
        resolve_cli_date_range(
            _ctx(),
            start_date="not-a-date",
            end_date=None,
            period=None,
        )

    assert excinfo.value.exit_code == 1
    assert "Invalid start date" in capsys.readouterr().err


def test_resolve_cli_date_range_rejects_reversed_bounds(capsys):
    with pytest.raises(click.exceptions.Exit):
        resolve_cli_date_range(
            _ctx(),
            start_date="10/06/2024",
            end_date="01/06/2024",
            period=None,
        )

    assert "after end date" in capsys.readouterr().err

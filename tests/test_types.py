"""Tests for shared enums."""

import pytest

from mcctl.types import DistributionChannel, StopOutcome, new_id


@pytest.mark.parametrize("raw,expected", [
    ("paper", DistributionChannel.PAPER),
    ("FABRIC", DistributionChannel.FABRIC),
    ("a", DistributionChannel.PAPER),
    (" B ", DistributionChannel.FABRIC),
])
def test_channel_lookup(raw, expected):
    assert DistributionChannel(raw) is expected


def test_unknown_channel():
    with pytest.raises(ValueError):
        DistributionChannel("vanilla")


def test_stop_outcome_wire_values():
    assert {o.value for o in StopOutcome} == {
        "already_stopped", "stopping_gracefully", "error_stopping", "error_no_stdin",
    }


def test_new_id_is_short_hex():
    ident = new_id()
    assert len(ident) == 12
    int(ident, 16)

"""Tests for the switch group against the relay matrix emulator."""

from __future__ import annotations

import pytest

from benchlink_core.errors import DomainError, InvalidTopologyError, UnknownChannelError
from benchlink_drivers.swtch import ScpiMatrixSwitch, matrix_channel_names
from benchlink_scpi.session import ScpiSession
from benchlink_sim.swtch import SwitchMatrixEmulator, make_34934a_emulator


@pytest.fixture
def emulator() -> SwitchMatrixEmulator:
    return make_34934a_emulator()


@pytest.fixture
def matrix(emulator: SwitchMatrixEmulator) -> ScpiMatrixSwitch:
    return ScpiMatrixSwitch(ScpiSession(emulator))


# ---------------------------------------------------------------------------
# Topology
# ---------------------------------------------------------------------------


class TestTopology:
    """Tests for channel layout and topology."""

    def test_channel_names(self, matrix: ScpiMatrixSwitch) -> None:
        assert matrix.channel_count() == 12
        assert matrix.channel(0).name == "Row1"
        assert matrix.channel(4).name == "Col1"
        assert matrix.channel("Col8").index == 11

    def test_description(self, matrix: ScpiMatrixSwitch) -> None:
        assert matrix.topology().description == "4x8 matrix, 1-wire"

    def test_wire_mode(self, emulator: SwitchMatrixEmulator) -> None:
        matrix = ScpiMatrixSwitch(ScpiSession(emulator), wire_mode=2)
        assert matrix.wire_mode() == 2
        assert matrix.channel("Col2").wire_mode() == 2
        with pytest.raises(UnknownChannelError):
            matrix.wire_mode("Col9")

    def test_matrix_channel_names(self) -> None:
        assert matrix_channel_names(2, 3) == ("Row1", "Row2", "Col1", "Col2", "Col3")

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"rows": 0},
            {"columns": 100},
            {"wire_mode": 0},
            {"rows": 2, "columns": 2, "channel_names": ["A", "B", "C"]},
        ],
    )
    def test_invalid_construction(
        self, emulator: SwitchMatrixEmulator, kwargs: dict[str, object]
    ) -> None:
        with pytest.raises(DomainError):
            ScpiMatrixSwitch(ScpiSession(emulator), **kwargs)


# ---------------------------------------------------------------------------
# Connections
# ---------------------------------------------------------------------------


class TestConnections:
    """Tests for connect, disconnect and queries."""

    def test_connect_closes_crossing(
        self, matrix: ScpiMatrixSwitch, emulator: SwitchMatrixEmulator
    ) -> None:
        matrix.connect("Row1", "Col3")
        assert emulator.commands[-1] == "ROUT:CLOS (@103)"
        assert emulator.closed_relays == {103}

    def test_argument_order_irrelevant(
        self, matrix: ScpiMatrixSwitch, emulator: SwitchMatrixEmulator
    ) -> None:
        matrix.connect("Col8", "Row4")
        assert emulator.closed_relays == {408}
        assert matrix.is_connected("Row4", "Col8")

    def test_disconnect(self, matrix: ScpiMatrixSwitch, emulator: SwitchMatrixEmulator) -> None:
        matrix.connect("Row2", "Col1")
        matrix.disconnect("Row2", "Col1")
        assert emulator.closed_relays == frozenset()
        assert not matrix.is_connected("Row2", "Col1")

    def test_disconnect_all(self, matrix: ScpiMatrixSwitch, emulator: SwitchMatrixEmulator) -> None:
        matrix.connect("Row1", "Col1")
        matrix.connect("Row2", "Col2")
        matrix.disconnect_all()
        assert emulator.closed_relays == frozenset()
        assert emulator.commands[-1] == "ROUT:OPEN:ALL"

    def test_wait_for_debounce(
        self, matrix: ScpiMatrixSwitch, emulator: SwitchMatrixEmulator
    ) -> None:
        matrix.connect("Row1", "Col1")
        matrix.wait_for_debounce(timeout=1.0)
        assert emulator.commands[-1] == "*OPC?"

    def test_connect_query_disconnect_sequence(
        self, matrix: ScpiMatrixSwitch, emulator: SwitchMatrixEmulator
    ) -> None:
        start = len(emulator.commands)
        matrix.connect("Row3", "Col5")
        assert matrix.is_connected("Row3", "Col5")
        assert not matrix.is_connected("Row3", "Col6")
        matrix.disconnect("Row3", "Col5")
        assert not matrix.is_connected("Row3", "Col5")
        assert emulator.commands[start:] == [
            "ROUT:CLOS (@305)",
            "ROUT:CLOS? (@305)",
            "ROUT:CLOS? (@306)",
            "ROUT:OPEN (@305)",
            "ROUT:CLOS? (@305)",
        ]

        sent_before = list(emulator.history)
        with pytest.raises(InvalidTopologyError):
            matrix.connect("Col1", "Col2")
        assert emulator.history == sent_before
        matrix.connect("Row1", "Col2")
        assert emulator.closed_relays == {102}

    def test_connect_by_alias(
        self, matrix: ScpiMatrixSwitch, emulator: SwitchMatrixEmulator
    ) -> None:
        matrix.set_aliases({"dmm_hi": "Row1", "tp3": "Col3"})
        matrix.connect("dmm_hi", "tp3")
        assert emulator.closed_relays == {103}


class TestInvalidTopology:
    """Invalid paths raise before anything reaches the instrument."""

    @pytest.mark.parametrize(
        ("a", "b"), [("Col1", "Col2"), ("Row1", "Row3"), ("Row2", "Row2")]
    )
    def test_invalid_pair_writes_nothing(
        self, matrix: ScpiMatrixSwitch, emulator: SwitchMatrixEmulator, a: str, b: str
    ) -> None:
        sent_before = list(emulator.history)
        with pytest.raises(InvalidTopologyError):
            matrix.connect(a, b)
        assert emulator.history == sent_before

    def test_invalid_pair_for_queries(self, matrix: ScpiMatrixSwitch) -> None:
        with pytest.raises(InvalidTopologyError):
            matrix.is_connected("Col1", "Col2")
        with pytest.raises(InvalidTopologyError):
            matrix.disconnect("Row1", "Row2")

    def test_two_sources_rejected(
        self, matrix: ScpiMatrixSwitch, emulator: SwitchMatrixEmulator
    ) -> None:
        matrix.set_source_channel("Row1", True)
        matrix.channel("Col1").set_source(True)
        sent_before = list(emulator.history)
        with pytest.raises(InvalidTopologyError):
            matrix.connect("Row1", "Col1")
        assert emulator.history == sent_before

    def test_source_to_non_source_allowed(
        self, matrix: ScpiMatrixSwitch, emulator: SwitchMatrixEmulator
    ) -> None:
        matrix.set_source_channel("Row1", True)
        matrix.connect("Row1", "Col1")
        assert emulator.closed_relays == {101}

    def test_unknown_channel(self, matrix: ScpiMatrixSwitch) -> None:
        with pytest.raises(UnknownChannelError):
            matrix.connect("Row1", "Col9")


# ---------------------------------------------------------------------------
# Sources and virtual names
# ---------------------------------------------------------------------------


class TestSourcesAndNames:
    """Tests for source marks and virtual names."""

    def test_source_marks(self, matrix: ScpiMatrixSwitch) -> None:
        matrix.set_source_channel("Row1", True)
        assert matrix.channel("Row1").is_source
        assert not matrix.is_source_channel("Row2")
        matrix.set_source_channel("Row1", False)
        assert not matrix.is_source_channel(0)

    def test_source_marks_survive_reset(self, matrix: ScpiMatrixSwitch) -> None:
        matrix.set_source_channel("Row3", True)
        matrix.reset()
        assert matrix.is_source_channel("Row3")

    def test_virtual_names(self, matrix: ScpiMatrixSwitch, emulator: SwitchMatrixEmulator) -> None:
        matrix.set_virtual_names({"Row1": "psu_out", "Col5": "uut_vin"})
        matrix.connect("psu_out", "uut_vin")
        assert emulator.closed_relays == {105}
        assert matrix.channel("Col5").alias == "uut_vin"

    def test_duplicate_virtual_name(self, matrix: ScpiMatrixSwitch) -> None:
        with pytest.raises(DomainError):
            matrix.set_virtual_names({"Row1": "x", "Row2": "x"})

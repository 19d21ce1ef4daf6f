"""Unit tests for persisting schematic analyses as component graphs."""

import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from manual_kb.core.exceptions import StoreError, StoreUnavailableError
from manual_kb.models.schematic_models import SchematicAnalysis
from manual_kb.services.schematic_graph_builder import SchematicGraphBuilder, component_key


def _analysis(components, wires=None, confidence=0.9, detected=True) -> SchematicAnalysis:
    return SchematicAnalysis.model_validate(
        {
            "schematic_detected": detected,
            "detection_confidence": confidence,
            "schematic_type": "wiring_diagram",
            "components": [{"name": name, "type": "other"} for name in components],
            "wires": wires or [],
        }
    )


def _wire(*names, wire_id="W1"):
    return {
        "id": wire_id,
        "color": "red",
        "connections": [{"component": name, "terminal": f"T{i}"} for i, name in enumerate(names)],
    }


class TestSchematicGraphBuilder:
    @pytest.fixture
    def schematic_id(self):
        return uuid.uuid4()

    @pytest.fixture
    def repo(self, schematic_id):
        """Schematic repository returning one stable id per (name, part number) key."""
        repo = MagicMock()
        repo.create_schematic = AsyncMock(return_value=schematic_id)
        node_ids = {}

        async def upsert_component(schematic_id, name, part_number, **kwargs):
            return node_ids.setdefault((name, part_number), uuid.uuid4())

        repo.node_ids = node_ids
        repo.upsert_component = AsyncMock(side_effect=upsert_component)
        repo.create_connection = AsyncMock(side_effect=lambda **kwargs: uuid.uuid4())
        return repo

    @pytest.fixture
    def builder(self, session, repo):
        return SchematicGraphBuilder(session, schematic_repo=repo, confidence_threshold=0.5)

    def _edges(self, repo):
        return [
            (call.kwargs["from_component_id"], call.kwargs["to_component_id"])
            for call in repo.create_connection.await_args_list
        ]

    @pytest.mark.asyncio
    async def test_low_confidence_page_is_not_stored(self, builder, repo, document_id):
        analysis = _analysis(["Compressor"], confidence=0.3)

        result = await builder.build(document_id, 1, analysis)

        assert result is None
        repo.create_schematic.assert_not_awaited()
        repo.upsert_component.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_not_detected_page_is_not_stored(self, builder, repo, document_id):
        analysis = _analysis([], confidence=0.9, detected=False)

        assert await builder.build(document_id, 1, analysis) is None
        repo.create_schematic.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_threshold_is_inclusive(self, builder, schematic_id, document_id):
        analysis = _analysis(["Compressor"], confidence=0.5)

        assert await builder.build(document_id, 1, analysis) == schematic_id

    @pytest.mark.asyncio
    async def test_schematic_row_carries_page_and_raw_analysis(self, builder, repo, document_id):
        analysis = _analysis(["Compressor"])

        await builder.build(document_id, 7, analysis, source_image_ref="manual.pdf#page=7")

        kwargs = repo.create_schematic.await_args.kwargs
        assert kwargs["document_id"] == document_id
        assert kwargs["page_number"] == 7
        assert kwargs["schematic_type"] == "wiring_diagram"
        assert kwargs["source_image_ref"] == "manual.pdf#page=7"
        assert kwargs["raw_analysis"]["components"][0]["name"] == "Compressor"

    @pytest.mark.asyncio
    async def test_path_wire_yields_adjacent_edges(self, builder, repo, document_id):
        analysis = _analysis(["A", "B", "C"], wires=[_wire("A", "B", "C")])

        await builder.build(document_id, 1, analysis)

        ids = {name: node_id for (name, _), node_id in repo.node_ids.items()}
        assert self._edges(repo) == [(ids["A"], ids["B"]), (ids["B"], ids["C"])]
        first_hop = repo.create_connection.await_args_list[0].kwargs
        assert first_hop["from_terminal"] == "T0"
        assert first_hop["to_terminal"] == "T1"
        assert first_hop["wire_id"] == "W1"
        assert first_hop["wire_color"] == "red"

    @pytest.mark.asyncio
    async def test_unresolved_hops_are_dropped(self, builder, repo, document_id):
        analysis = _analysis(["A", "B"], wires=[_wire("A", "Ghost", "B"), _wire("A", "B", "Ghost", wire_id="W2")])

        await builder.build(document_id, 1, analysis)

        ids = {name: node_id for (name, _), node_id in repo.node_ids.items()}
        assert self._edges(repo) == [(ids["A"], ids["B"])]

    @pytest.mark.asyncio
    async def test_hop_without_component_is_dropped(self, builder, repo, document_id):
        nameless = {"id": "W2", "connections": [{"component": None}, {"component": "B"}, {"component": "C"}]}
        analysis = _analysis(["A", "B", "C"], wires=[_wire("A", "B"), nameless])

        await builder.build(document_id, 1, analysis)

        ids = {name: node_id for (name, _), node_id in repo.node_ids.items()}
        assert self._edges(repo) == [(ids["A"], ids["B"]), (ids["B"], ids["C"])]

    @pytest.mark.asyncio
    async def test_single_endpoint_wire_has_no_edges(self, builder, repo, document_id):
        analysis = _analysis(["A"], wires=[_wire("A")])

        await builder.build(document_id, 1, analysis)

        repo.create_connection.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_endpoint_names_match_case_insensitively(self, builder, repo, document_id):
        analysis = _analysis(["Compressor", "Run  Capacitor"], wires=[_wire("compressor", "run capacitor")])

        await builder.build(document_id, 1, analysis)

        assert len(self._edges(repo)) == 1

    @pytest.mark.asyncio
    async def test_repeated_component_folds_into_one_node(self, builder, repo, document_id):
        analysis = _analysis(["Fan", "Fan", "Motor"], wires=[_wire("Fan", "Motor")])

        await builder.build(document_id, 1, analysis)

        assert repo.upsert_component.await_count == 3
        assert len(repo.node_ids) == 2
        assert len(self._edges(repo)) == 1

    @pytest.mark.asyncio
    async def test_component_failure_does_not_block_others(self, builder, repo, session, document_id):
        stored = {}

        async def upsert_component(schematic_id, name, part_number, **kwargs):
            if name == "B":
                raise IntegrityError("INSERT", {}, Exception("check constraint"))
            return stored.setdefault(name, uuid.uuid4())

        repo.upsert_component.side_effect = upsert_component
        analysis = _analysis(["A", "B", "C"], wires=[_wire("A", "B", "C"), _wire("A", "C", wire_id="W2")])

        schematic_id = await builder.build(document_id, 1, analysis)

        assert schematic_id is not None
        assert set(stored) == {"A", "C"}
        assert self._edges(repo) == [(stored["A"], stored["C"])]
        assert session.begin_nested.call_count >= 3

    @pytest.mark.asyncio
    async def test_connectivity_failure_on_component_propagates(self, builder, repo, document_id):
        repo.upsert_component.side_effect = OperationalError("INSERT", {}, Exception("connection refused"))

        with pytest.raises(StoreUnavailableError):
            await builder.build(document_id, 1, _analysis(["A"]))

    @pytest.mark.asyncio
    async def test_schematic_row_failure_raises_store_error(self, builder, repo, session, document_id):
        repo.create_schematic.side_effect = IntegrityError("INSERT", {}, Exception("fk violation"))

        with pytest.raises(StoreError) as exc_info:
            await builder.build(document_id, 1, _analysis(["A"]))

        assert not isinstance(exc_info.value, StoreUnavailableError)
        session.rollback.assert_awaited()
        repo.upsert_component.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_connection_failure_is_skipped(self, builder, repo, document_id):
        repo.create_connection.side_effect = [
            IntegrityError("INSERT", {}, Exception("fk violation")),
            uuid.uuid4(),
        ]
        analysis = _analysis(["A", "B", "C"], wires=[_wire("A", "B", "C")])

        assert await builder.build(document_id, 1, analysis) is not None
        assert repo.create_connection.await_count == 2


def test_component_key_collapses_whitespace_and_case():
    assert component_key("  Run\tCapacitor ") == component_key("run capacitor")

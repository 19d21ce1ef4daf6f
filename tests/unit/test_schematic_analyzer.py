"""Unit tests for schematic page analysis and response repair."""

import json

import pytest
from PIL import Image

from conftest import ScriptedCompletionClient
from manual_kb.core.exceptions import CapabilityError, ParseError
from manual_kb.core.llm_client import ImagePart
from manual_kb.models.schematic_models import ComponentType, SchematicType
from manual_kb.services.schematic_analyzer import SchematicPageAnalyzer

WIRING_DIAGRAM = {
    "schematic_detected": True,
    "detection_confidence": 0.92,
    "schematic_type": "wiring_diagram",
    "components": [
        {"name": "Compressor", "type": "compressor", "confidence": 0.95, "voltage_rating": "230V"},
        {"name": "Contactor", "part_number": "HN52KC024", "type": "contactor"},
        {"name": "Run Capacitor", "type": "capacitor", "amperage_rating": None},
    ],
    "wires": [
        {
            "id": "W1",
            "color": "black",
            "gauge": "14 AWG",
            "connections": [
                {"component": "Contactor", "terminal": "T1"},
                {"component": "Compressor", "terminal": "C"},
            ],
        }
    ],
}


class TestSchematicPageAnalyzer:
    @pytest.fixture
    def page_image(self):
        return Image.new("RGB", (16, 16), color="white")

    @pytest.mark.asyncio
    async def test_detected_schematic_is_parsed(self, page_image):
        client = ScriptedCompletionClient([json.dumps(WIRING_DIAGRAM)])
        analyzer = SchematicPageAnalyzer(client)

        analysis = await analyzer.analyze(page_image, page_number=3)

        assert analysis.schematic_detected is True
        assert analysis.detection_confidence == 0.92
        assert analysis.schematic_type == SchematicType.WIRING_DIAGRAM
        assert [c.name for c in analysis.components] == ["Compressor", "Contactor", "Run Capacitor"]
        assert analysis.components[1].component_type == ComponentType.CONTACTOR
        assert analysis.components[1].confidence == 0.8
        assert analysis.wires[0].wire_id == "W1"
        assert [e.component for e in analysis.wires[0].connections] == ["Contactor", "Compressor"]
        assert analysis.error is None

    @pytest.mark.asyncio
    async def test_request_sends_prompt_and_image(self, page_image):
        client = ScriptedCompletionClient([json.dumps(WIRING_DIAGRAM)])
        analyzer = SchematicPageAnalyzer(client, temperature=0.1, max_tokens=4000)

        await analyzer.analyze(page_image, page_number=1)

        contents = client.calls[0]["contents"]
        assert isinstance(contents[0], str)
        assert isinstance(contents[1], ImagePart)
        assert contents[1].mime_type == "image/png"
        assert contents[1].data.startswith(b"\x89PNG")
        assert client.calls[0]["generation_config"] == {"temperature": 0.1, "max_output_tokens": 4000}

    @pytest.mark.asyncio
    async def test_fenced_response_is_repaired(self, page_image):
        response = "Here is the analysis:\n```json\n" + json.dumps(WIRING_DIAGRAM) + "\n```"
        analyzer = SchematicPageAnalyzer(ScriptedCompletionClient([response]))

        analysis = await analyzer.analyze(page_image, page_number=1)

        assert analysis.schematic_detected is True
        assert len(analysis.components) == 3

    @pytest.mark.asyncio
    async def test_prose_response_is_not_detected(self, page_image):
        client = ScriptedCompletionClient(["This page shows a table of contents."])
        analyzer = SchematicPageAnalyzer(client)

        analysis = await analyzer.analyze(page_image, page_number=2)

        assert analysis.schematic_detected is False
        assert analysis.detection_confidence == 0.0
        assert analysis.components == []
        assert analysis.wires == []
        assert analysis.error

    @pytest.mark.asyncio
    async def test_capability_failure_is_not_detected(self, page_image):
        client = ScriptedCompletionClient([CapabilityError("API Client Error 400: bad image")])
        analyzer = SchematicPageAnalyzer(client)

        analysis = await analyzer.analyze(page_image, page_number=4)

        assert analysis.schematic_detected is False
        assert "bad image" in analysis.error

    @pytest.mark.asyncio
    async def test_unexpected_failure_is_not_detected(self, page_image):
        client = ScriptedCompletionClient([RuntimeError("socket closed")])
        analyzer = SchematicPageAnalyzer(client)

        analysis = await analyzer.analyze(page_image, page_number=4)

        assert analysis.schematic_detected is False
        assert "RuntimeError" in analysis.error

    @pytest.mark.asyncio
    async def test_schema_violation_is_not_detected(self, page_image):
        payload = dict(WIRING_DIAGRAM, detection_confidence=1.5)
        analyzer = SchematicPageAnalyzer(ScriptedCompletionClient([json.dumps(payload)]))

        analysis = await analyzer.analyze(page_image, page_number=5)

        assert analysis.schematic_detected is False
        assert analysis.detection_confidence == 0.0
        assert analysis.error

    @pytest.mark.asyncio
    async def test_image_part_is_passed_through(self):
        image_part = ImagePart(data=b"\x89PNGfake", mime_type="image/png")
        client = ScriptedCompletionClient([json.dumps({"schematic_detected": False, "detection_confidence": 0.1})])
        analyzer = SchematicPageAnalyzer(client)

        analysis = await analyzer.analyze(image_part, page_number=1)

        assert client.calls[0]["contents"][1] is image_part
        assert analysis.schematic_detected is False
        assert analysis.error is None

    @pytest.mark.asyncio
    async def test_limiter_is_acquired(self, page_image):
        class CountingLimiter:
            acquired = 0

            async def acquire(self):
                self.acquired += 1

        limiter = CountingLimiter()
        analyzer = SchematicPageAnalyzer(ScriptedCompletionClient([json.dumps(WIRING_DIAGRAM)]))

        await analyzer.analyze(page_image, page_number=1, limiter=limiter)

        assert limiter.acquired == 1


class TestParseResponse:
    def test_unknown_types_fall_back(self):
        payload = {
            "schematic_detected": True,
            "detection_confidence": 0.7,
            "schematic_type": "ladder_diagram",
            "components": [{"name": "Defrost Board", "type": "circuit_board"}],
        }

        analysis = SchematicPageAnalyzer.parse_response(json.dumps(payload))

        assert analysis.schematic_type == SchematicType.UNKNOWN
        assert analysis.components[0].component_type == ComponentType.OTHER
        assert analysis.wires == []

    def test_model_supplied_error_field_is_ignored(self):
        payload = {"schematic_detected": True, "detection_confidence": 0.8, "error": "none"}

        analysis = SchematicPageAnalyzer.parse_response(json.dumps(payload))

        assert analysis.error is None

    def test_missing_required_field_raises(self):
        with pytest.raises(ParseError):
            SchematicPageAnalyzer.parse_response(json.dumps({"components": []}))

    def test_component_without_name_raises(self):
        payload = {
            "schematic_detected": True,
            "detection_confidence": 0.8,
            "components": [{"type": "fan"}],
        }

        with pytest.raises(ParseError):
            SchematicPageAnalyzer.parse_response(json.dumps(payload))

    def test_endpoint_without_component_keeps_page(self):
        payload = dict(
            WIRING_DIAGRAM,
            wires=[
                WIRING_DIAGRAM["wires"][0],
                {"id": "W2", "connections": [{"component": None, "terminal": "L1"}, "Run Capacitor"]},
            ],
        )

        analysis = SchematicPageAnalyzer.parse_response(json.dumps(payload))

        assert analysis.schematic_detected is True
        assert len(analysis.components) == 3
        assert [e.component for e in analysis.wires[1].connections] == [None, "Run Capacitor"]
        assert analysis.wires[1].connections[0].terminal == "L1"

    def test_raw_analysis_round_trips_aliases(self):
        analysis = SchematicPageAnalyzer.parse_response(json.dumps(WIRING_DIAGRAM))

        raw = analysis.to_raw()

        assert raw["components"][0]["type"] == "compressor"
        assert raw["wires"][0]["id"] == "W1"
        assert "error" not in raw

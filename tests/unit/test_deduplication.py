"""Unit tests for candidate deduplication."""

from manual_kb.models.extraction_models import CandidatePart, CandidateTerm
from manual_kb.services.deduplication import deduplicate, deduplicate_parts, deduplicate_terms


class TestDeduplicateTerms:
    def _create_term(self, standard_term: str, description: str = "") -> CandidateTerm:
        return CandidateTerm(
            standard_term=standard_term,
            category="refrigerant",
            variations=[],
            description=description,
        )

    def test_case_insensitive_first_occurrence_wins(self):
        terms = [
            self._create_term("R-410A", "first"),
            self._create_term("r-410a", "second"),
            self._create_term("TXV"),
        ]

        unique = deduplicate_terms(terms)

        assert [term.standard_term for term in unique] == ["R-410A", "TXV"]
        assert unique[0].description == "first"

    def test_idempotent(self):
        terms = [self._create_term(name) for name in ["Contactor", "contactor", "Capacitor"]]

        once = deduplicate_terms(terms)
        twice = deduplicate_terms(once)

        assert [t.standard_term for t in twice] == [t.standard_term for t in once]

    def test_preserves_order(self):
        names = ["Compressor", "Condenser", "Evaporator"]

        unique = deduplicate_terms(self._create_term(name) for name in names)

        assert [t.standard_term for t in unique] == names

    def test_empty_input(self):
        assert deduplicate_terms([]) == []


class TestDeduplicateParts:
    def _create_part(self, name: str, part_number=None) -> CandidatePart:
        return CandidatePart(name=name, part_number=part_number, category="Electrical")

    def test_numbered_parts_keyed_by_part_number(self):
        parts = [
            self._create_part("Contactor 40A", "HN52KC024"),
            self._create_part("Contactor, 2-pole", "hn52kc024"),
            self._create_part("Contactor 40A", "HN52KC025"),
        ]

        unique = deduplicate_parts(parts)

        assert [p.part_number for p in unique] == ["HN52KC024", "HN52KC025"]

    def test_unnumbered_parts_keyed_by_name(self):
        parts = [
            self._create_part("Run Capacitor"),
            self._create_part("run capacitor"),
            self._create_part("Start Capacitor"),
        ]

        unique = deduplicate_parts(parts)

        assert [p.name for p in unique] == ["Run Capacitor", "Start Capacitor"]

    def test_number_and_name_keys_do_not_collide_across_kinds(self):
        parts = [
            self._create_part("Filter Drier", "FD-100"),
            self._create_part("Filter Drier"),
        ]

        assert len(deduplicate_parts(parts)) == 2


def test_generic_deduplicate_with_custom_key():
    assert deduplicate(["a", "B", "b", "A", "c"], key=str.lower) == ["a", "B", "c"]

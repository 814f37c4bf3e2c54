"""
Medication Interaction Engine - Response Extractor Tests
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

from interaction_engine.core.models import Severity, EvidenceLevel
from interaction_engine.nlp.response_extractor import (
    ResponseExtractor, DEFAULT_STRATEGIES, extract, extract_table, extract_line_scan
)


@pytest.fixture
def extractor():
    return ResponseExtractor()


class TestNegativeResult:
    """Explicit "no interaction" answers"""

    def test_no_significant_interactions(self, extractor):
        """The negative phrase yields an empty list"""
        outcome = extractor.extract_with_outcome(
            "No significant interactions found.", "ibuprofen", ["paracetamol"]
        )
        assert outcome.risks == []
        assert outcome.strategy == "negative"

    def test_case_insensitive(self, extractor):
        assert extractor.extract("NO INTERACTIONS FOUND between these drugs", "a", ["b"]) == []

    def test_negative_wins_over_table(self, extractor):
        """The negative phrase wins even if a table is present"""
        text = (
            "Warfarin | Ibuprofen | high | Increased bleeding risk\n"
            "Otherwise no significant interaction was identified."
        )
        assert extractor.extract(text, "warfarin", ["ibuprofen"]) == []


class TestTableExtraction:
    """Pipe-delimited rows"""

    def test_single_row(self, extractor):
        """One row gives one moderate-evidence record"""
        risks = extractor.extract(
            "Warfarin | Ibuprofen | high | Increased bleeding risk", "warfarin", ["ibuprofen"]
        )
        assert len(risks) == 1
        assert risks[0].severity == Severity.HIGH
        assert risks[0].evidence_level == EvidenceLevel.MODERATE
        assert risks[0].medications == ("Warfarin", "Ibuprofen")
        assert risks[0].description == "Increased bleeding risk"

    def test_markdown_table_with_header(self, extractor):
        """Header and separator rows are skipped"""
        text = "\n".join([
            "Here are the interactions:",
            "| Drug A | Drug B | Severity | Description |",
            "|--------|--------|----------|-------------|",
            "| Warfarin | Ibuprofen | Severe | Bleeding |",
            "| Warfarin | Naproxen | mild | GI upset |",
            "| Warfarin | Omeprazole | moderate | Minor INR change |",
        ])
        outcome = extractor.extract_with_outcome(text, "warfarin", ["ibuprofen", "naproxen", "omeprazole"])

        assert outcome.strategy == "table"
        assert [r.severity for r in outcome.risks] == [Severity.HIGH, Severity.LOW, Severity.MEDIUM]
        assert all(r.evidence_level == EvidenceLevel.MODERATE for r in outcome.risks)

    def test_echoed_format_line_skipped(self, extractor):
        """The instruction's own format line is a header, not an interaction"""
        text = (
            "Drug A | Drug B | Severity (high, medium, or low) | Brief description of the interaction\n"
            "Warfarin | Omeprazole | medium | INR rise"
        )
        risks = extractor.extract(text, "warfarin", ["omeprazole"])
        assert [r.medications for r in risks] == [("Warfarin", "Omeprazole")]
        assert risks[0].severity == Severity.MEDIUM

    @pytest.mark.parametrize("header", [
        "| Medication 1 | Medication 2 | Severity Rating | Description |",
        "| Drug | Drug 2 | Notes | Description |",
        "| First | Second | Risk Level | Details |",
    ])
    def test_header_variants_skipped(self, header):
        assert extract_table(header, ["warfarin", "aspirin"]) is None

    def test_list_markers_stripped_from_rows(self, extractor):
        """Numbered and bulleted rows yield clean medication names"""
        text = (
            "1. Warfarin | Aspirin | low | Minor bleeding\n"
            "- Warfarin | Ibuprofen | medium | GI bleeding"
        )
        risks = extractor.extract(text, "warfarin", ["aspirin", "ibuprofen"])
        assert [r.medications for r in risks] == [("Warfarin", "Aspirin"), ("Warfarin", "Ibuprofen")]

    def test_duplicate_rows_are_kept(self, extractor):
        """Deduplication is not the extractor's job"""
        text = (
            "Warfarin | Aspirin | high | Bleeding\n"
            "Aspirin | Warfarin | medium | Bleeding again"
        )
        assert len(extractor.extract(text, "warfarin", ["aspirin"])) == 2

    def test_wrong_field_count_ignored(self):
        """Rows that are not four fields wide are not table rows"""
        assert extract_table("Warfarin | Aspirin | high", ["warfarin", "aspirin"]) is None
        assert extract_table("a | b | c | d | e", ["a", "b"]) is None

    def test_table_preferred_over_line_scan(self, extractor):
        """Line-scan only runs when the table strategy found nothing"""
        text = (
            "Warfarin | Ibuprofen | medium | Bleeding\n"
            "High risk: warfarin and aspirin together"
        )
        risks = extractor.extract(text, "warfarin", ["ibuprofen", "aspirin"])
        assert len(risks) == 1
        assert risks[0].evidence_level == EvidenceLevel.MODERATE


class TestLineScan:
    """Heuristic scan of free text"""

    def test_numbered_list_line(self, extractor):
        """A cue next to "risk" and two names gives a weak record"""
        text = "1. **Warfarin and Ibuprofen**: High risk of bleeding when combined."
        outcome = extractor.extract_with_outcome(text, "warfarin", ["ibuprofen"])

        assert outcome.strategy == "line_scan"
        assert len(outcome.risks) == 1
        risk = outcome.risks[0]
        assert risk.severity == Severity.HIGH
        assert risk.evidence_level == EvidenceLevel.WEAK
        assert risk.medications == ("warfarin", "ibuprofen")
        assert risk.description == "Warfarin and Ibuprofen: High risk of bleeding when combined."

    def test_severity_label(self, extractor):
        """"Severity: mild" is a low-severity cue"""
        risks = extractor.extract("Metformin with alcohol - Severity: mild", "metformin", ["alcohol"])
        assert len(risks) == 1
        assert risks[0].severity == Severity.LOW

    def test_cue_without_level_defaults_to_medium(self, extractor):
        risks = extractor.extract(
            "Potential interaction between warfarin and ibuprofen.", "warfarin", ["ibuprofen"]
        )
        assert len(risks) == 1
        assert risks[0].severity == Severity.MEDIUM

    def test_high_cue_wins_in_mixed_line(self, extractor):
        risks = extractor.extract(
            "Potential interaction: warfarin and aspirin carry a high risk of bleeding",
            "warfarin", ["aspirin"]
        )
        assert risks[0].severity == Severity.HIGH

    def test_first_two_names_used(self, extractor):
        """Only the first two matched names are reported"""
        risks = extractor.extract(
            "Severe interaction: digoxin, amiodarone and verapamil",
            "digoxin", ["verapamil", "amiodarone"]
        )
        assert risks[0].medications == ("digoxin", "verapamil")

    def test_names_matched_by_normalized_form(self, extractor):
        """Raw names with dosage still match plain mentions"""
        risks = extractor.extract(
            "Major risk: warfarin with clopidogrel", "Warfarin 5mg Tablet", ["Clopidogrel 75mg"]
        )
        assert risks[0].medications == ("Warfarin 5mg Tablet", "Clopidogrel 75mg")

    def test_needs_two_distinct_names(self, extractor):
        """A single medication is not a pair"""
        assert extractor.extract("High risk of bleeding with warfarin.", "warfarin", ["ibuprofen"]) == []
        assert extractor.extract("High risk: warfarin and WARFARIN", "warfarin", ["Warfarin"]) == []

    def test_line_without_cue_ignored(self):
        assert extract_line_scan(
            "Warfarin and ibuprofen are commonly prescribed together.", ["warfarin", "ibuprofen"]
        ) is None


class TestUnparseable:
    """Input no strategy understands"""

    @pytest.mark.parametrize("text", ["", "   ", "asdkjh qwe", None, 12345])
    def test_returns_empty(self, extractor, text):
        """Unparseable input yields [] and never raises"""
        outcome = extractor.extract_with_outcome(text, "warfarin", ["aspirin"])
        assert outcome.risks == []
        assert not outcome.parsed

    def test_failing_strategy_is_skipped(self):
        """A strategy that raises does not stop the chain"""
        def broken(raw_text, medications):
            raise RuntimeError("boom")

        extractor = ResponseExtractor([("broken", broken), *DEFAULT_STRATEGIES])
        risks = extractor.extract("Warfarin | Aspirin | high | Bleeding", "warfarin", ["aspirin"])
        assert len(risks) == 1

    def test_module_level_extract(self):
        assert len(extract("Warfarin | Aspirin | low | Minor", "warfarin", ["aspirin"])) == 1

    def test_missing_candidate_list(self, extractor):
        assert extractor.extract("High risk: warfarin", "warfarin", None) == []

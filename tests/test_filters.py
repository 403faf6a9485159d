"""Tests for the filter stages and their fixed ordering."""

from datetime import date

import pytest

from conftest import make_event
from patient_timeline.filters import (
    CriteriaValidator,
    FilterPipeline,
    PatternError,
    bound_dates,
    include_lanes,
    like_to_regex,
    match_codes,
    match_names,
    restrict_semantic,
    restrict_sources,
    semantic_kinds,
)
from patient_timeline.models import FilterCriteria, Kind, Lane, SemanticResult


def _ids(events):
    return [e.id for e in events]


@pytest.fixture
def events():
    return [
        make_event(Kind.DIAGNOSIS, "DX_1", date(2020, 1, 1), code="E11.9", source_system="EPIC"),
        make_event(Kind.DIAGNOSIS, "DX_2", date(2020, 6, 1), code="I10", source_system="CERNER"),
        make_event(Kind.PROCEDURE, "PX_1", date(2020, 2, 1), code="99213", source_system="EPIC"),
        make_event(Kind.LAB, "LAB_1", date(2020, 3, 1), names=("Hemoglobin A1c", "4548-4")),
        make_event(Kind.PRESCRIBING, "RX_1", date(2020, 4, 1), names=("Metformin 500 MG",)),
        make_event(Kind.PRESCRIBING, "RX_2", date(2020, 4, 2), names=("Lisinopril",)),
        make_event(Kind.DISPENSING, "DISP_4", date(2020, 4, 3), names=("METFORMIN HCL",)),
        make_event(Kind.DISPENSING, "DISP_5", date(2020, 4, 4), names=("Atorvastatin",)),
        make_event(Kind.DEATH, "P001", date(2022, 6, 30)),
        make_event(Kind.BIRTH, "P001", date(1950, 5, 17)),
    ]


class TestLikeToRegex:
    @pytest.mark.parametrize(
        ("pattern", "value", "matches"),
        [
            ("E11%", "E11.9", True),
            ("E11%", "e11.65", True),
            ("E11%", "XE11", False),
            ("E11._", "E11.9", True),
            ("E11._", "E11.65", False),
            ("%.9", "E11.9", True),
            ("I10", "I10", True),
            ("I10", "I10.1", False),
            ("[EI]1%", "I10", True),
            ("[EI]1%", "J10", False),
            ("[^E]%", "I10", True),
            ("[A-C]%", "B20", True),
            ("[A-C]%", "D20", False),
            ("100\\%", "100%", True),
            ("100\\%", "1000", False),
            ("a.b", "axb", False),
        ],
    )
    def test_translation(self, pattern, value, matches):
        assert (like_to_regex(pattern).fullmatch(value) is not None) is matches

    @pytest.mark.parametrize("pattern", ["E11\\", "[EI", "E[]1", "[^]"])
    def test_malformed_patterns_raise(self, pattern):
        with pytest.raises(PatternError):
            like_to_regex(pattern)

    def test_pattern_error_is_value_error(self):
        with pytest.raises(ValueError):
            like_to_regex("[")


class TestSemanticRestriction:
    def test_medications_spans_prescribing_and_dispensing(self, events):
        semantic = SemanticResult(
            "medications", {"prescribing": ["RX_1"], "dispensing": ["DISP_4"]}
        )
        result = restrict_semantic(events, FilterCriteria(semantic=semantic))
        assert _ids(result) == ["prescribing-RX_1", "dispensing-DISP_4"]

    def test_exclusive_drops_other_kinds(self, events):
        semantic = SemanticResult("diagnoses", ["DX_2"])
        result = restrict_semantic(events, FilterCriteria(semantic=semantic))
        assert _ids(result) == ["diagnosis-DX_2"]

    def test_kind_name_target(self, events):
        semantic = SemanticResult("diagnosis", ["DX_1"])
        result = restrict_semantic(events, FilterCriteria(semantic=semantic))
        assert _ids(result) == ["diagnosis-DX_1"]

    def test_unknown_target_yields_nothing(self, events):
        semantic = SemanticResult("allergies", ["A1"])
        assert restrict_semantic(events, FilterCriteria(semantic=semantic)) == []

    def test_empty_match_set_is_identity(self, events):
        semantic = SemanticResult("labs", [])
        assert restrict_semantic(events, FilterCriteria(semantic=semantic)) == events

    def test_ids_compared_as_strings(self):
        events = [make_event(Kind.LAB, "42")]
        semantic = SemanticResult("labs", [42])
        assert _ids(restrict_semantic(events, FilterCriteria(semantic=semantic))) == ["lab-42"]

    @pytest.mark.parametrize(
        ("target", "kinds"),
        [
            ("medications", {Kind.PRESCRIBING, Kind.DISPENSING}),
            ("Labs", {Kind.LAB}),
            ("prescriptions", {Kind.PRESCRIBING}),
            ("LAB_RESULT_CM", {Kind.LAB}),
            ("death", set()),
            ("nonsense", set()),
        ],
    )
    def test_semantic_kinds(self, target, kinds):
        assert semantic_kinds(target) == kinds


class TestLaneInclusion:
    def test_selected_lanes_plus_life_markers(self, events):
        result = include_lanes(events, FilterCriteria(lanes=["labs"]))
        assert _ids(result) == ["lab-LAB_1", "death-P001", "birth-P001"]

    def test_accepts_enum_members(self, events):
        result = include_lanes(events, FilterCriteria(lanes={Lane.PROCEDURES}))
        assert _ids(result) == ["procedure-PX_1", "death-P001", "birth-P001"]

    def test_accepts_labels(self, events):
        result = include_lanes(events, FilterCriteria(lanes=["Labs", " PRESCRIPTIONS "]))
        assert _ids(result) == [
            "lab-LAB_1",
            "prescribing-RX_1",
            "prescribing-RX_2",
            "death-P001",
            "birth-P001",
        ]

    def test_unknown_lanes_skipped(self, events):
        result = include_lanes(events, FilterCriteria(lanes=["labs", "imaging"]))
        assert _ids(result) == ["lab-LAB_1", "death-P001", "birth-P001"]


class TestDateBounds:
    def test_inclusive_bounds(self, events):
        criteria = FilterCriteria(start_date=date(2020, 2, 1), end_date=date(2020, 4, 1))
        assert _ids(bound_dates(events, criteria)) == [
            "procedure-PX_1",
            "lab-LAB_1",
            "prescribing-RX_1",
        ]

    def test_open_end(self, events):
        criteria = FilterCriteria(start_date=date(2022, 1, 1))
        assert _ids(bound_dates(events, criteria)) == ["death-P001"]

    def test_open_start(self, events):
        criteria = FilterCriteria(end_date=date(1960, 1, 1))
        assert _ids(bound_dates(events, criteria)) == ["birth-P001"]

    def test_inverted_bounds_match_nothing(self, events):
        criteria = FilterCriteria(start_date=date(2021, 1, 1), end_date=date(2020, 1, 1))
        assert bound_dates(events, criteria) == []
        assert FilterPipeline().apply(events, criteria) == []


class TestCodePatterns:
    def test_dx_pattern_only_touches_diagnoses(self, events):
        result = match_codes(events, FilterCriteria(dx_pattern="E11%"))
        assert "diagnosis-DX_1" in _ids(result)
        assert "diagnosis-DX_2" not in _ids(result)
        assert len(result) == len(events) - 1

    def test_px_pattern(self, events):
        result = match_codes(events, FilterCriteria(px_pattern="992__"))
        assert "procedure-PX_1" in _ids(result)
        result = match_codes(events, FilterCriteria(px_pattern="J%"))
        assert "procedure-PX_1" not in _ids(result)

    def test_event_without_code_fails_pattern(self):
        events = [make_event(Kind.DIAGNOSIS, "D", code=None)]
        assert match_codes(events, FilterCriteria(dx_pattern="%")) == []


class TestNameMatch:
    def test_lab_name_substring(self, events):
        result = match_names(events, FilterCriteria(lab_name="a1c"))
        assert "lab-LAB_1" in _ids(result)
        result = match_names(events, FilterCriteria(lab_name="sodium"))
        assert "lab-LAB_1" not in _ids(result)

    def test_lab_name_matches_loinc(self, events):
        result = match_names(events, FilterCriteria(lab_name="4548"))
        assert "lab-LAB_1" in _ids(result)

    def test_med_name_checked_on_both_tables(self, events):
        result = match_names(events, FilterCriteria(med_name="metformin"))
        ids = _ids(result)
        assert "prescribing-RX_1" in ids
        assert "dispensing-DISP_4" in ids
        assert "prescribing-RX_2" not in ids
        assert "dispensing-DISP_5" not in ids
        assert "diagnosis-DX_1" in ids

    def test_whitespace_only_is_identity(self, events):
        assert match_names(events, FilterCriteria(lab_name="   ")) == events


class TestSourceRestriction:
    def test_selected_sources(self, events):
        result = restrict_sources(events, FilterCriteria(source_systems=["EPIC"]))
        ids = _ids(result)
        assert "diagnosis-DX_1" in ids
        assert "diagnosis-DX_2" not in ids
        # unknown source and life markers always kept
        assert "lab-LAB_1" in ids
        assert "death-P001" in ids

    def test_all_disables_filter(self, events):
        assert restrict_sources(events, FilterCriteria(source_systems=["all"])) == events


class TestFilterPipeline:
    def setup_method(self):
        self.pipeline = FilterPipeline()

    def test_no_criteria_is_identity(self, events):
        assert self.pipeline.apply(events) == events
        assert self.pipeline.apply(events, FilterCriteria()) == events

    def test_empty_input(self):
        assert self.pipeline.apply([], FilterCriteria(dx_pattern="E11%", lanes=["labs"])) == []

    def test_semantic_medications_scenario(self, events):
        criteria = FilterCriteria(
            semantic=SemanticResult(
                "medications", {"prescribing": ["RX_1"], "dispensing": ["DISP_4"]}
            )
        )
        assert _ids(self.pipeline.apply(events, criteria)) == [
            "prescribing-RX_1",
            "dispensing-DISP_4",
        ]

    def test_stages_compose(self, events):
        criteria = FilterCriteria(
            lanes=["diagnoses", "prescribing"],
            start_date=date(2020, 1, 1),
            end_date=date(2021, 1, 1),
            med_name="metformin",
            source_systems=["EPIC"],
        )
        assert _ids(self.pipeline.apply(events, criteria)) == [
            "diagnosis-DX_1",
            "prescribing-RX_1",
        ]

    def test_input_not_mutated(self, events):
        before = list(events)
        self.pipeline.apply(events, FilterCriteria(lanes=["labs"]))
        assert events == before


class TestCriteriaValidator:
    def setup_method(self):
        self.validator = CriteriaValidator()

    def test_valid_criteria(self):
        assert self.validator.validate(FilterCriteria(dx_pattern="E11%", lanes=["labs"])) == []

    def test_malformed_pattern_reported(self):
        errors = self.validator.validate(FilterCriteria(px_pattern="[99"))
        assert [e.path for e in errors] == ["px_pattern"]

    def test_unknown_lane_reported(self):
        errors = self.validator.validate(FilterCriteria(lanes=["labs", "imaging"]))
        assert len(errors) == 1
        assert "imaging" in errors[0].message

    def test_lane_labels_accepted(self):
        assert self.validator.validate(FilterCriteria(lanes=["Labs", "Prescriptions"])) == []

    def test_inverted_dates_reported(self):
        criteria = FilterCriteria(start_date=date(2021, 1, 1), end_date=date(2020, 1, 1))
        assert [e.path for e in self.validator.validate(criteria)] == ["start_date"]

"""Tests for record inventory helpers — counts, source systems, date span."""

from datetime import date

from patient_timeline import inventory
from patient_timeline.models import Kind, Lane, PatientData


class TestCountRecords:
    def test_counts_per_lane(self, patient_data):
        counts = inventory.count_records(patient_data)
        assert list(counts) == list(Lane)
        assert counts[Lane.DIAGNOSES] == 3  # raw rows, including the undated one
        assert counts[Lane.LABS] == 2

    def test_empty_patient(self):
        counts = inventory.count_records(PatientData(patient_id="X"))
        assert set(counts.values()) == {0}


class TestSourceSystems:
    def test_ranked_by_count(self, patient_data):
        systems = inventory.source_systems(patient_data)
        assert [(s.code, s.count) for s in systems] == [("EPIC", 9), ("CERNER", 3)]

    def test_display_label_with_description(self, patient_data):
        epic = inventory.source_systems(patient_data)[0]
        assert epic.display_label == "Epic Clarity (EPIC) - 9 events"

    def test_display_label_without_description(self, patient_data):
        cerner = inventory.source_systems(patient_data)[1]
        assert cerner.display_label == "CERNER - 3 events"

    def test_no_sources(self):
        data = PatientData(patient_id="X", records={Kind.LAB: [{"RESULT_DATE": "2020-01-01"}]})
        assert inventory.source_systems(data) == []


class TestDateSpan:
    def test_includes_birth_and_death(self, patient_data):
        span = inventory.date_span(patient_data)
        assert span.start == date(1950, 5, 17)
        assert span.end == date(2022, 6, 30)

    def test_ignores_unparseable(self):
        data = PatientData(
            patient_id="X",
            records={Kind.DIAGNOSIS: [{"DX_DATE": "bad"}, {"DX_DATE": "2020-01-01"}]},
        )
        span = inventory.date_span(data)
        assert (span.start, span.end) == (date(2020, 1, 1), date(2020, 1, 1))

    def test_fallback_to_last_year(self):
        span = inventory.date_span(PatientData(patient_id="X"), today=date(2024, 3, 1))
        assert span.start == date(2023, 3, 2)
        assert span.end == date(2024, 3, 1)

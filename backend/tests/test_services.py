"""
test_services.py — Tests for report filtering, annotation and aggregation.

Coverage:
    - filter_by_location identity, district, mandal and combined filters
    - Permissive behaviour without boundary data
    - Subset property and no mutation of inputs
    - annotate for dict, pydantic, dataclass and plain-object reports
    - Outline-based filtering, grouping and summary rows (with selection)
"""

import copy
from dataclasses import dataclass
from typing import Optional
from unittest.mock import patch

import pytest

from pothole_geo.boundaries import BoundaryIndex
from pothole_geo.schemas import PotholeReport
from pothole_geo.services import (
    annotate,
    filter_by_district_outline,
    filter_by_location,
    filter_reports_in_boundary,
    group_by_location,
    summarize_by_location,
)


def _ids(reports):
    return [r["id"] for r in reports]


@dataclass
class DataclassReport:
    id: str
    lat: float
    lng: float
    district: Optional[str] = None
    mandal: Optional[str] = None


@dataclass(frozen=True)
class FrozenReport:
    id: str
    lat: float
    lng: float
    district: Optional[str] = None
    mandal: Optional[str] = None


class PlainReport:
    def __init__(self, id, lat, lng):
        self.id, self.lat, self.lng = id, lat, lng


# ════════════════════════════════════════════════════════════════
#  filter_by_location — end-to-end scenario
# ════════════════════════════════════════════════════════════════

class TestFilterByLocationScenario:

    def test_no_selection_returns_input(self, test_index, test_reports):
        result = filter_by_location(test_reports, test_index, None, None)
        assert result is test_reports

    def test_district_only(self, test_index, test_reports):
        assert _ids(filter_by_location(test_reports, test_index, "Test District")) == ["r1", "r2"]

    def test_district_and_mandal(self, test_index, test_reports):
        result = filter_by_location(test_reports, test_index, "Test District", "Test Mandal")
        assert _ids(result) == ["r1"]

    def test_mandal_only(self, test_index, test_reports):
        assert _ids(filter_by_location(test_reports, test_index, mandal="Test Mandal")) == ["r1"]

    def test_district_name_is_canonicalised(self, test_index, test_reports):
        assert _ids(filter_by_location(test_reports, test_index, "test-district")) == ["r1", "r2"]
        assert _ids(filter_by_location(test_reports, test_index, "TEST  DISTRICT")) == ["r1", "r2"]

    def test_empty_strings_count_as_no_selection(self, test_index, test_reports):
        assert filter_by_location(test_reports, test_index, "", "") is test_reports


# ════════════════════════════════════════════════════════════════
#  filter_by_location — richer boundaries
# ════════════════════════════════════════════════════════════════

class TestFilterByLocation:

    def test_alias_spelling_selects_same_district(self, ap_index, ap_reports):
        new = filter_by_location(ap_reports, ap_index, "YSR Kadapa")
        old = filter_by_location(ap_reports, ap_index, "Y.S.R.")
        assert _ids(new) == _ids(old) == ["kadapa-1", "kadapa-2", "pulivendla"]

    def test_mandal_within_district(self, ap_index, ap_reports):
        result = filter_by_location(ap_reports, ap_index, "YSR Kadapa", "Kadapa")
        assert _ids(result) == ["kadapa-1", "kadapa-2"]

    def test_mandal_from_other_district_matches_nothing(self, ap_index, ap_reports):
        assert filter_by_location(ap_reports, ap_index, "Krishna", "Kadapa") == []

    def test_mandal_name_comparison_ignores_case(self, ap_index, ap_reports):
        result = filter_by_location(ap_reports, ap_index, mandal="VIJAYAWADA (URBAN)")
        assert _ids(result) == ["vijayawada"]

    def test_district_level_match(self, ap_index, ap_reports):
        assert _ids(filter_by_location(ap_reports, ap_index, "NTR")) == ["ntr-hole"]

    def test_unknown_district_matches_nothing(self, ap_index, ap_reports):
        assert filter_by_location(ap_reports, ap_index, "Atlantis") == []

    def test_unclassified_reports_never_match(self, ap_index, ap_reports):
        for district in ap_index.list_districts():
            assert "offshore" not in _ids(filter_by_location(ap_reports, ap_index, district))

    @pytest.mark.parametrize("district,mandal", [
        ("YSR Kadapa", None), ("Krishna", None), ("NTR", None),
        (None, "Pulivendla"), ("Krishna", "Vijayawada (Urban)"),
    ])
    def test_result_is_matching_subset(self, ap_index, ap_reports, district, mandal):
        result = filter_by_location(ap_reports, ap_index, district, mandal)
        for report in result:
            assert any(report is original for original in ap_reports)
            classified = ap_index.classify(lon=report["lng"], lat=report["lat"])
            if district:
                assert ap_index.district_key(classified.district) == ap_index.district_key(district)
            if mandal:
                assert classified.mandal == mandal

    def test_inputs_not_mutated(self, ap_index, ap_reports):
        snapshot = copy.deepcopy(ap_reports)
        filter_by_location(ap_reports, ap_index, "Krishna", "Vijayawada (Urban)")
        assert ap_reports == snapshot

    def test_missing_index_returns_input_unfiltered(self, ap_reports):
        assert filter_by_location(ap_reports, None, "Krishna") is ap_reports

    def test_failed_load_returns_input_unfiltered(self, ap_reports):
        index = BoundaryIndex.empty(load_error="GeoJSON file not found")
        assert filter_by_location(ap_reports, index, "Krishna", "Vijayawada (Urban)") is ap_reports

    def test_report_without_coordinates_excluded(self, ap_index):
        reports = [{"id": "nowhere"}, {"id": "kadapa", "lat": 14.5, "lng": 78.8}]
        assert _ids(filter_by_location(reports, ap_index, "YSR Kadapa")) == ["kadapa"]

    def test_pydantic_reports(self, test_index):
        reports = [PotholeReport(id="a", lat=2, lng=2), PotholeReport(id="b", lat=7, lng=7)]
        result = filter_by_location(reports, test_index, "Test District", "Test Mandal")
        assert [r.id for r in result] == ["a"]
        assert result[0] is reports[0]


# ════════════════════════════════════════════════════════════════
#  annotate
# ════════════════════════════════════════════════════════════════

class TestAnnotate:

    def test_dict_reports(self, test_index, test_reports):
        annotated = annotate(test_reports, test_index)
        assert [(r["district"], r["mandal"]) for r in annotated] == [
            ("Test District", "Test Mandal"),
            ("Test District", "Unknown"),
            ("Unknown", "Unknown"),
        ]

    def test_returns_copies(self, test_index, test_reports):
        annotated = annotate(test_reports, test_index)
        assert all(a is not r for a, r in zip(annotated, test_reports))
        assert "district" not in test_reports[0]
        assert annotated[0]["id"] == "r1"

    def test_pydantic_reports(self, ap_index):
        report = PotholeReport(id="k", lat=14.5, lng=78.8)
        annotated = annotate([report], ap_index)[0]
        assert annotated.district == "YSR Kadapa"
        assert annotated.mandal == "Kadapa"
        assert report.district is None

    def test_empty_index_labels_everything_unknown(self, test_reports):
        annotated = annotate(test_reports, BoundaryIndex.empty())
        assert {(r["district"], r["mandal"]) for r in annotated} == {("Unknown", "Unknown")}

    def test_dataclass_reports(self, test_index):
        report = DataclassReport("a", lat=2, lng=2)
        annotated = annotate([report], test_index)[0]
        assert isinstance(annotated, DataclassReport)
        assert (annotated.district, annotated.mandal) == ("Test District", "Test Mandal")
        assert report.district is None

    def test_frozen_dataclass_reports(self, test_index):
        annotated = annotate([FrozenReport("b", lat=7, lng=7)], test_index)[0]
        assert (annotated.district, annotated.mandal) == ("Test District", "Unknown")

    def test_plain_object_reports(self, test_index):
        report = PlainReport("c", lat=20, lng=20)
        annotated = annotate([report], test_index)[0]
        assert annotated is not report
        assert (annotated.id, annotated.district, annotated.mandal) == ("c", "Unknown", "Unknown")
        assert not hasattr(report, "district")


# ════════════════════════════════════════════════════════════════
#  Outline filtering, grouping, summary
# ════════════════════════════════════════════════════════════════

class TestOutlineFilter:

    def test_outline_includes_gap_between_mandals(self, ap_index):
        reports = [
            {"id": "gap", "lat": 14.45, "lng": 78.5},
            {"id": "kadapa", "lat": 14.5, "lng": 78.8},
            {"id": "far", "lat": 16.45, "lng": 80.55},
        ]
        assert _ids(filter_by_district_outline(reports, ap_index, "YSR Kadapa")) == ["gap", "kadapa"]
        assert _ids(filter_by_location(reports, ap_index, "YSR Kadapa")) == ["kadapa"]

    def test_unknown_district_outline(self, ap_index, ap_reports):
        assert filter_by_district_outline(ap_reports, ap_index, "NTR") == []

    def test_filter_reports_in_boundary_respects_holes(self, polygon_with_hole_geometry):
        reports = [{"id": "hole", "lat": 5, "lng": 5}, {"id": "ring", "lat": 1, "lng": 1}]
        result = filter_reports_in_boundary(reports, polygon_with_hole_geometry["coordinates"])
        assert _ids(result) == ["ring"]


class TestGroupingAndSummary:

    def test_group_by_location(self, ap_index, ap_reports):
        groups = group_by_location(ap_reports, ap_index)
        assert _ids(groups["YSR Kadapa"]["Kadapa"]) == ["kadapa-1", "kadapa-2"]
        assert _ids(groups["NTR"]["Unknown"]) == ["ntr-hole"]
        assert _ids(groups["Unknown"]["Unknown"]) == ["offshore"]

    def test_summary_rows_sorted(self, ap_index, ap_reports):
        rows = summarize_by_location(ap_reports, ap_index)
        assert [(r["district"], r["mandal"]) for r in rows] == [
            ("Krishna", "Vijayawada (Urban)"),
            ("NTR", "Unknown"),
            ("Unknown", "Unknown"),
            ("YSR Kadapa", "Kadapa"),
            ("YSR Kadapa", "Pulivendla"),
        ]

    def test_summary_counts_by_severity(self, ap_index, ap_reports):
        rows = {(r["district"], r["mandal"]): r for r in summarize_by_location(ap_reports, ap_index)}
        kadapa = rows[("YSR Kadapa", "Kadapa")]
        assert kadapa["total"] == 2
        assert kadapa["severity"] == {"low": 0, "medium": 0, "high": 2, "unknown": 0}
        assert rows[("NTR", "Unknown")]["severity"]["unknown"] == 1

    def test_summary_of_nothing(self, ap_index):
        assert summarize_by_location([], ap_index) == []

    def test_summary_respects_selection(self, ap_index, ap_reports):
        rows = summarize_by_location(ap_reports, ap_index, district="Y.S.R.")
        assert [(r["district"], r["mandal"]) for r in rows] == [
            ("YSR Kadapa", "Kadapa"),
            ("YSR Kadapa", "Pulivendla"),
        ]

    def test_summary_classifies_each_report_once(self, ap_index, ap_reports):
        with patch.object(BoundaryIndex, "classify", autospec=True,
                          side_effect=BoundaryIndex.classify) as classify:
            summarize_by_location(ap_reports, ap_index, district="YSR Kadapa", mandal="Kadapa")
        assert classify.call_count == len(ap_reports)

    def test_summary_selection_ignored_without_boundary_data(self, ap_reports):
        rows = summarize_by_location(ap_reports, BoundaryIndex.empty(), district="YSR Kadapa")
        assert rows[0]["total"] == len(ap_reports)

    def test_group_by_location_with_mandal_selection(self, ap_index, ap_reports):
        groups = group_by_location(ap_reports, ap_index, mandal="pulivendla")
        assert list(groups) == ["YSR Kadapa"]
        assert list(groups["YSR Kadapa"]) == ["Pulivendla"]

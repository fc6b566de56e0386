"""Tests for parser contracts.

These tests verify that contracts are enforced at stage boundaries.
They test contract violations directly, without defensive logic downstream.
"""

import pytest

pytestmark = pytest.mark.unit

from arraydata.contracts import (
    ContractViolation,
    require,
    assert_header_resolved,
    assert_canonical,
    assert_heading_alignment,
    assert_metrics_shape,
)
from arraydata.datafile.types import FormatType


class TestRequire:

    def test_require_passes(self):
        require(True, "never raised")

    def test_require_raises_with_message(self):
        with pytest.raises(ContractViolation, match="bad index width"):
            require(False, "bad index width")

    def test_violation_is_runtime_error(self):
        """Contract violations are programmer errors, not data errors."""
        assert issubclass(ContractViolation, RuntimeError)


class TestHeaderContract:
    """Test header resolution contract."""

    def test_known_format_passes(self):
        assert_header_resolved("GenePix", [0, 1, 2, 3, 4], ["Block", "Column", "Row", "X", "Y", "F635"])

    def test_enum_member_accepted(self):
        assert_header_resolved(FormatType.GEO, [0], ["ID_REF", "VALUE"])

    def test_unknown_format_fails(self):
        with pytest.raises(ContractViolation, match="not a known format type"):
            assert_header_resolved("Bogus", [0], ["ID_REF"])

    def test_index_outside_headings_fails(self):
        with pytest.raises(ContractViolation, match="outside 2 headings"):
            assert_header_resolved("GEO", [2], ["ID_REF", "VALUE"])


class TestTransformContract:
    """Test post-transform index shape."""

    @pytest.mark.parametrize("index", [[], [0], [0, 1, 2, 3]])
    def test_canonical_widths_pass(self, index):
        assert_canonical("Generic", index)

    def test_vendor_width_fails(self):
        with pytest.raises(ContractViolation, match="5 index columns"):
            assert_canonical("GenePix", [0, 1, 2, 3, 4])

    def test_four_columns_require_generic(self):
        with pytest.raises(ContractViolation, match="format is 'Agilent'"):
            assert_canonical("Agilent", [0, 1, 2, 3])

    def test_identifier_column_any_format(self):
        assert_canonical("FGEM", [0])


class TestMatrixContract:

    def test_aligned_passes(self):
        assert_heading_alignment(["A", "B"], [["h1"], ["h2"]])

    def test_misaligned_fails(self):
        with pytest.raises(ContractViolation, match="2 QTs but 1 hyb lists"):
            assert_heading_alignment(["A", "B"], [["h1"]])


class TestMetricsContract:

    def test_valid_metrics_pass(self):
        metrics = {
            "F635 Median": {
                "datatype": "integer", "min": 1.0, "max": 9.0,
                "errors": {"Null in numeric data field": 2},
                "benford": [0] * 10,
            }
        }
        assert_metrics_shape(metrics)

    def test_error_counts_must_be_ints(self):
        metrics = {"Flags": {"errors": {"Text in numeric data field": "many"}}}
        with pytest.raises(ContractViolation, match="errors for 'Flags'"):
            assert_metrics_shape(metrics)

    def test_benford_needs_ten_bins(self):
        metrics = {"F635 Median": {"errors": {}, "benford": [0] * 9}}
        with pytest.raises(ContractViolation, match="10 bins"):
            assert_metrics_shape(metrics)

    def test_non_scalar_field_fails(self):
        metrics = {"Flags": {"errors": {}, "min": [1, 2]}}
        with pytest.raises(ContractViolation, match="expected scalar"):
            assert_metrics_shape(metrics)

"""Data file stage contracts.

Header resolution must leave a file with a known format and index
columns inside its headings; after the coordinate transform the index has
0, 1 or 4 columns. Combined matrices must carry one hybridization list per
quantitation type column. Metrics hold scalar fields only, apart from the
error-count map and the digit histogram.
"""

from arraydata.contracts.base import require
from arraydata.datafile.types import FormatType

_VALID_FORMATS = frozenset(f.value for f in FormatType)
_SCALAR_TYPES = (str, int, float, bool, type(None))


def assert_header_resolved(format_type, index_columns, headings) -> None:
    """Enforce the header resolution contract.

    Parameters
    ----------
    format_type : str or FormatType
        Format identified for the file.
    index_columns : list of int
        Positions of the coordinate or identifier columns.
    headings : list of str
        Column headings found on the header line.

    Raises
    ------
    ContractViolation
        If any invariant is violated.
    """
    name = getattr(format_type, "value", format_type)
    require(
        name in _VALID_FORMATS,
        f"Header contract violated: format '{name}' is not a known format type"
    )
    require(
        all(0 <= i < len(headings) for i in index_columns),
        f"Header contract violated: index {index_columns} outside {len(headings)} headings"
    )


def assert_canonical(format_type, index_columns) -> None:
    """Enforce the post-transform index shape.

    Vendor layouts carry 2 to 7 index columns until rewritten; afterwards
    only an identifier column or the four canonical coordinates remain.
    """
    name = getattr(format_type, "value", format_type)
    require(
        len(index_columns) in (0, 1, 4),
        f"Transform contract violated: {len(index_columns)} index columns, expected 0, 1 or 4"
    )
    require(
        len(index_columns) != 4 or name == FormatType.GENERIC.value,
        f"Transform contract violated: four coordinate columns but format is '{name}'"
    )


def assert_heading_alignment(heading_qts, heading_hybs) -> None:
    """Combined data matrices need one hyb list per QT column."""
    require(
        len(heading_qts) == len(heading_hybs),
        f"Matrix contract violated: {len(heading_qts)} QTs but {len(heading_hybs)} hyb lists"
    )


def assert_metrics_shape(data_metrics) -> None:
    """Each metrics entry holds scalars plus the errors/benford maps."""
    for qt, metric in data_metrics.items():
        for key, value in metric.items():
            if key == "errors":
                require(
                    isinstance(value, dict) and all(isinstance(v, int) for v in value.values()),
                    f"Metrics contract violated: errors for '{qt}' must map message to count"
                )
            elif key == "benford":
                require(
                    len(value) == 10,
                    f"Metrics contract violated: benford histogram for '{qt}' needs 10 bins"
                )
            else:
                require(
                    isinstance(value, _SCALAR_TYPES),
                    f"Metrics contract violated: '{qt}.{key}' is {type(value).__name__}, expected scalar"
                )

"""Formal parsing invariants.

This file documents what each stage MUST produce. It is a reviewer
anchor and system reference, not executable code.
"""

PIPELINE_INVARIANTS = {
    "linebreak": [
        "Exactly one of Unix, DOS or Mac terminators is present in the sample",
        "All later line iteration uses the detected terminator",
    ],

    "header": [
        "format_type is one of the FormatType values",
        "index_columns all fall inside the heading list",
        "heading_qts and heading_hybs have equal length for data matrices",
    ],

    "transform": [
        "Output starts with MetaColumn, MetaRow, Column, Row or one identifier",
        "index_columns has 0, 1 or 4 entries; four only for Generic",
        "Non-index columns keep their original relative order",
        "The rewrite spool is released on success and on error",
    ],

    "statistics": [
        "data_metrics entries hold scalars plus an error-count map",
        "min and max are seeded from the first numeric value",
        "Benford histograms exist only for Signal subclasses",
        "The file read position is unchanged by the MD5 digest",
    ],

    "affymetrix": [
        "The magic number maps to exactly one parser class",
        "parse_header() is repeatable and only seeks the handle",
        "CHP export requires a parsed CDF for probe set names",
    ],
}

# Which stages are optional vs required
STAGE_REQUIREMENTS = {
    "linebreak": "REQUIRED",     # Text files only
    "header": "REQUIRED",
    "transform": "OPTIONAL",     # Generic and FGEM files pass through
    "statistics": "REQUIRED",
    "affymetrix": "OPTIONAL",    # Binary files only
}

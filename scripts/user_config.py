"""arraydata User Configuration.

This is the user-facing configuration file. Modify settings here to customize
normalization. Expert defaults live in src/arraydata/schemas/param.py.

Usage:
    python scripts/normalize_datafiles.py -c scripts/user_config.py
    python scripts/normalize_datafiles.py -c scripts/user_config.py /data/raw/sample01.gpr
    arraydata-normalize -c scripts/user_config.py --data-type normalized
"""

CONFIG = {
    # ========================================================================
    # BATCH INPUT & OUTPUT
    # ========================================================================
    "INPUT_DIR": "./data/raw",          # Searched for data files
    "OUTPUT_DIR": "./data/normalized",  # Canonical files, log, tracker, summary
    "DATA_TYPE": "raw",                 # raw, normalized, transformed, measured_data_matrix, EXP
    "WORKERS": 4,                       # Files normalized in parallel

    # ========================================================================
    # PARSER SETTINGS
    # ========================================================================
    "MAX_HEADER_LINES": 1000,  # Header lines scanned for column headings
    "ENCODING": "latin-1",     # Text encoding of input files
    "NULL_TOKEN": "null",      # Written for empty cells

    # ========================================================================
    # LOGGING
    # ========================================================================
    "LOG_LEVEL": "INFO",

    # Heading patterns of a known format can be replaced, e.g.
    # "FORMATS": {"CodeLink": ["Logical_row", "Logical_col", "Probe_name"]},
}

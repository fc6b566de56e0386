"""Materialize a parsed data file as a sorted canonical table.

Rows are sorted with bounded memory: stripped rows are cut into runs of
``run_size`` rows, each run is sorted and spooled to a temporary file, and
the spooled runs are k-way merged while the output is written.
"""

import heapq
import logging
import pickle
import tempfile
from contextlib import ExitStack, closing
from itertools import islice
from operator import itemgetter
from typing import Iterable, Optional

import pandas as pd

from arraydata.datafile.headers import split_fields

logger = logging.getLogger(__name__)

__all__ = ['select_columns', 'sort_rows', 'sorted_runs', 'external_sort', 'strip_and_sort']


def select_columns(headings, index_columns, keep_headings):
    """Choose output columns: index first, then kept headings.

    Kept headings are ordered alphabetically when every heading is unique,
    otherwise in file order.

    Returns
    -------
    tuple
        ``(positions, headings, qts)``
    """
    keep = set(keep_headings)
    index = list(index_columns)
    positions = list(index)
    fixed_headings = [headings[i] for i in index]
    qts = []

    candidates = range(len(headings))
    if len(set(headings)) == len(headings):
        candidates = sorted(candidates, key=lambda i: headings[i])
    for i in candidates:
        if headings[i] in keep and i not in index:
            positions.append(i)
            fixed_headings.append(headings[i])
            qts.append(headings[i])
    return positions, fixed_headings, qts


def _sorted_keys(rows, key_count: int):
    """Sort keys of ``rows`` in sorted order.

    Keys are the first ``key_count`` fields as numbers (non-numeric as 0)
    followed by the whole row text.
    """
    frame = pd.DataFrame([row[:key_count] for row in rows], dtype=object)
    keys = pd.DataFrame({
        f"key{n}": pd.to_numeric(frame[n], errors="coerce").fillna(0)
        for n in range(key_count)
    })
    keys["line"] = ["\t".join(row) for row in rows]
    return keys.sort_values(list(keys.columns), kind="mergesort")


def sort_rows(rows, key_count: int):
    """Numeric sort on the first ``key_count`` fields.

    Non-numeric keys sort as 0; ties fall back to the whole row text, and
    the sort is stable.
    """
    if not rows or not key_count:
        return rows
    return [rows[i] for i in _sorted_keys(rows, key_count).index]


def sorted_runs(rows, key_count: int, run_size: int):
    """Yield sorted runs of at most ``run_size`` rows as ``(key, row)`` lists."""
    rows = iter(rows)
    while True:
        chunk = list(islice(rows, run_size))
        if not chunk:
            return
        keys = _sorted_keys(chunk, key_count)
        yield [(key, chunk[i]) for i, key in zip(keys.index, keys.itertuples(index=False, name=None))]


def _read_run(spool):
    while True:
        try:
            yield pickle.load(spool)
        except EOFError:
            return


def external_sort(rows, key_count: int, run_size: int, spool_max_size: int = 0):
    """Sort ``rows`` like :func:`sort_rows` holding at most one run in memory.

    Parameters
    ----------
    rows : iterable of list of str
        Rows to sort.
    key_count : int
        Number of leading numeric key fields.
    run_size : int
        Rows per sorted run.
    spool_max_size : int
        Bytes a run keeps in memory before its spool moves to disk.

    Yields
    ------
    list of str
        Rows in sorted order.
    """
    with ExitStack() as stack:
        runs = []
        for run in sorted_runs(rows, key_count, run_size):
            spool = stack.enter_context(tempfile.SpooledTemporaryFile(max_size=spool_max_size))
            for item in run:
                pickle.dump(item, spool, protocol=pickle.HIGHEST_PROTOCOL)
            spool.seek(0)
            runs.append(_read_run(spool))
        logger.debug("Merging %s sorted runs", len(runs))
        for _, row in heapq.merge(*runs, key=itemgetter(0)):
            yield row


def _stripped_rows(datafile, positions, null_token):
    for line in datafile.reader:
        if not line.strip():
            datafile.warn("Warning: skipping empty line in data file.")
            continue
        fields = split_fields(line)
        row = []
        for i in positions:
            value = fields[i].strip() if i < len(fields) else ""
            row.append(value if value != "" else null_token)
        yield row


def strip_and_sort(datafile, output_path, keep_headings: Optional[Iterable[str]] = None,
                   null_token: str = "null", sort: bool = True, run_size: int = 100_000,
                   spool_max_size: int = 0):
    """Write the remaining rows of ``datafile`` as a canonical table.

    Values are whitespace-stripped and empty values replaced with
    ``null_token``; empty lines are skipped with a warning. The output
    starts with a heading line. Afterwards ``datafile`` reads from the new
    file, positioned on its first data row, with index columns ``0..n-1``.

    Parameters
    ----------
    datafile : RawDataFile
        Parsed file, positioned on its first data row.
    output_path : str or Path
        Destination file.
    keep_headings : iterable of str, optional
        Non-index headings to keep. Defaults to every heading.
    null_token : str
        Replacement for empty cells.
    sort : bool
        Sort rows numerically on the index columns.
    run_size : int
        Rows held in memory per sorted run.
    spool_max_size : int
        In-memory bytes per spooled run.

    Returns
    -------
    int
        Number of data rows written.
    """
    headings = list(datafile.column_headings)
    if keep_headings is None:
        keep_headings = headings
    positions, fixed_headings, qts = select_columns(headings, datafile.index_columns, keep_headings)
    hybs = None
    if datafile.heading_hybs:
        # Hyb lists follow their columns
        non_index = [i for i in range(len(headings)) if i not in datafile.index_columns]
        hyb_of = dict(zip(non_index, datafile.heading_hybs))
        hybs = [hyb_of.get(i, []) for i in positions[len(datafile.index_columns):]]

    key_count = len(datafile.index_columns)
    rows = _stripped_rows(datafile, positions, null_token)
    if sort and key_count:
        rows = external_sort(rows, key_count, run_size, spool_max_size)

    linebreak = datafile.linebreak_type
    written = 0
    with closing(rows), open(output_path, "w", encoding=datafile.encoding, newline="") as fh:
        fh.write("\t".join(fixed_headings) + linebreak)
        for row in rows:
            fh.write("\t".join(row) + linebreak)
            written += 1
    logger.info("Wrote %s rows to %s", written, output_path)

    datafile.use_path(output_path)
    datafile.set_layout(datafile.format_type, list(range(key_count)),
                        fixed_headings, heading_qts=qts)
    if hybs is not None:
        datafile.heading_hybs = hybs
    return written

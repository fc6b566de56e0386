"""Failure policy for contract violations.

Contracts fail fast and loud. All violations raise the same exception
type so callers can tell parser bugs apart from bad input files.
"""

from enum import Enum


class FailurePolicy(str, Enum):
    """Failure policy for contract violations.

    FAIL_FAST (default): raise immediately on contract violation.
    SKIP_FILE: DatafileProcessor marks the file failed and the batch goes on.
    """
    FAIL_FAST = "fail_fast"
    SKIP_FILE = "skip_file"


class ContractViolation(RuntimeError):
    """Raised when a parsing stage breaks its own guarantees.

    This indicates a bug in parser logic, not a malformed data file. It
    means a stage did not produce the invariants it promised.

    Key distinction:
    - ValueError: user/config error (handled by Pydantic)
    - DatafileError: the input file cannot be decoded
    - ContractViolation: parser bug (programmer error)
    """
    pass

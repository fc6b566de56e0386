"""Parser contracts: fail-fast enforcement of stage invariants.

Contracts fail immediately when a parsing stage does not produce its
promised invariants.

Key principle:
- Pydantic validates config correctness
- DatafileError reports undecodable input
- Contracts validate parser correctness
"""

from arraydata.contracts.failure import ContractViolation, FailurePolicy
from arraydata.contracts.base import require
from arraydata.contracts.datafile import (
    assert_header_resolved,
    assert_canonical,
    assert_heading_alignment,
    assert_metrics_shape,
)

__all__ = [
    "ContractViolation",
    "FailurePolicy",
    "require",
    "assert_header_resolved",
    "assert_canonical",
    "assert_heading_alignment",
    "assert_metrics_shape",
]

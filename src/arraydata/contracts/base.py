"""Base contract enforcement utilities.

require() is the single enforcement mechanism for all contracts. It
checks invariants at stage boundaries, it does not validate user input.
"""

from arraydata.contracts.failure import ContractViolation


def require(condition: bool, message: str) -> None:
    """Enforce a stage contract.

    Parameters
    ----------
    condition : bool
        The invariant that must be true. If False, ContractViolation is raised.
    message : str
        Error message explaining the violation.

    Raises
    ------
    ContractViolation
        If condition is False.

    Examples
    --------
    >>> require(len(index) in (0, 1, 4), "Header contract: bad index width")
    """
    if not condition:
        raise ContractViolation(message)

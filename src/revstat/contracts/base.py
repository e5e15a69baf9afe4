"""Base contract enforcement utilities.

The require() function is the single enforcement mechanism for engine
invariants. Data problems are reported through ProcessingError subclasses;
require() is reserved for conditions that can only fail through a bug.
"""

from revstat.contracts.failure import ContractViolation


def require(condition: bool, message: str) -> None:
    """Enforce an engine invariant.

    Parameters
    ----------
    condition : bool
        The invariant that must be true. If False, ContractViolation is raised.

    message : str
        Error message explaining the violation (for debugging).

    Raises
    ------
    ContractViolation
        If condition is False.

    Examples
    --------
    >>> require(window.upper <= size, "Window runs past end of dataset")
    >>> require(batch_rows >= 1, "Row batch must be positive")
    """
    if not condition:
        raise ContractViolation(message)

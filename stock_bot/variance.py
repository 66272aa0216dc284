"""Variance between the leader's corrected count and the system quantity."""


def compute_result(corrected: int | None, system_quantity: int) -> int | None:
    """Signed variance: positive means excess versus the system, negative a shortage.

    Returns None while no corrected value has been entered.
    """
    if corrected is None:
        return None
    return corrected - system_quantity


def format_result(result: int | None) -> str:
    """Format a variance with an explicit sign, empty when unknown."""
    if result is None:
        return ""
    if result > 0:
        return f"+{result}"
    return str(result)

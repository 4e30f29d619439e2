def format_amount(amount: float) -> str:
    """Format an amount with grouping and one decimal, e.g. '63,000.0'."""
    return f"{amount:,.1f}"


def format_remaining(amount: float) -> str:
    """Like format_amount, but keeps the sign explicit for overspent budgets."""
    if amount < 0:
        return f"-{abs(amount):,.1f}"
    return format_amount(amount)

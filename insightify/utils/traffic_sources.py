"""Referrer classification into traffic sources.

Rules are evaluated in order; the first case-sensitive substring match wins.
"""

DIRECT = "Direct"
OTHER = "Other"

SOURCE_RULES: tuple[tuple[str, str], ...] = (
    ("google", "Google"),
    ("facebook", "Facebook"),
    ("twitter", "Twitter"),
    ("x.com", "Twitter"),
    ("linkedin", "LinkedIn"),
    ("github", "GitHub"),
)


def classify_referrer(referrer: str | None) -> str:
    """Map a referrer URL to a traffic source label.

    Args:
        referrer: Referrer URL, the literal "direct", empty, or None

    Returns:
        Source label such as "Google", "Direct" or "Other"
    """
    if not referrer or referrer == "direct":
        return DIRECT
    for pattern, label in SOURCE_RULES:
        if pattern in referrer:
            return label
    return OTHER

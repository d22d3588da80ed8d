import re
from typing import NamedTuple


class MerchantMatcher(NamedTuple):
    name: str
    regex: re.Pattern[str]
    group: int = 1


# Evaluated in order; the first match longer than MIN_MERCHANT_LENGTH wins.
MERCHANT_MATCHERS: tuple[MerchantMatcher, ...] = (
    MerchantMatcher("caps_prefix", re.compile(r"^([A-Z]+[A-Z\s&]+?)[\s*]")),
    MerchantMatcher("capitalized_words", re.compile(r"([A-Z][a-z]+(?:\s+[A-Z][a-z]+)*)")),
    MerchantMatcher("leading_words", re.compile(r"^([\w\s]+?)(?:\s+\d+|\s*\*|$)")),
    MerchantMatcher("accented_caps_prefix", re.compile(r"^([A-ZÁÇÉÍÓÚÂÊÎÔÛÀÈÌÒÙÃ]+[\w\s&]*?)[\s*]")),
    MerchantMatcher(
        "banking_operation",
        re.compile(r"(TEF|PIX|TRANSFERENCIA|SAQUE|DEPOSITO)", re.IGNORECASE),
    ),
    MerchantMatcher(
        "company_suffix",
        re.compile(r"^(.*?)\s+(LTDA|S/A|SA|ME|EPP)(\s|$)", re.IGNORECASE),
    ),
    MerchantMatcher(
        "payment_prefix",
        re.compile(r"^(PGTO|PAG|COMPRA)\s+(.*)", re.IGNORECASE),
        group=2,
    ),
    MerchantMatcher("before_date", re.compile(r"^(.*?)\s+(\d{2}/\d{2}|\d{4})")),
)

MIN_MERCHANT_LENGTH = 2


def extract_merchant(description: str | None) -> str | None:
    """
    Best-effort merchant name from a transaction description.

    Returns the first matcher hit (in MERCHANT_MATCHERS order), trimmed and
    lowercased, or None.
    """
    if not description:
        return None

    for matcher in MERCHANT_MATCHERS:
        match = matcher.regex.search(description)
        if not match:
            continue
        candidate = (match.group(matcher.group) or "").strip()
        if len(candidate) > MIN_MERCHANT_LENGTH:
            return candidate.lower()
    return None

import pytest

from smart_categorizer.features.merchant import extract_merchant


@pytest.mark.parametrize(
    ("description", "expected"),
    [
        ("padaria doce pao", "padaria doce pao"),
        ("uber trip 123", "uber trip"),
        ("UBER*TRIP", "uber"),
        ("Netflix.com", "netflix"),
        ("pix-enviado fulano", "pix"),
        ("padaria sao jorge ltda - 12/05", "padaria sao jorge"),
        ("loja-x 12/05", "loja-x"),
    ],
)
def test_extract_merchant(description: str, expected: str) -> None:
    assert extract_merchant(description) == expected


def test_first_matching_pattern_wins() -> None:
    # The all-caps prefix matcher runs before the payment-prefix matcher,
    # so the keyword itself is returned rather than the remainder.
    assert extract_merchant("COMPRA CARTAO") == "compra"


@pytest.mark.parametrize("description", [None, "", "ab", "??"])
def test_no_merchant(description: str | None) -> None:
    assert extract_merchant(description) is None

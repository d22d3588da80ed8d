import re

# Portuguese prepositions and adverbs that carry no category signal.
STOP_WORDS = frozenset({
    "de", "da", "do", "das", "dos", "em", "na", "no", "nas", "nos",
    "para", "por", "com", "sem", "sob", "sobre", "entre", "durante",
    "antes", "depois", "ate", "desde", "contra", "segundo", "conforme",
    "perante", "mediante", "excepto", "salvo", "menos", "fora", "afora",
    "alem", "aquem", "atraves", "junto", "perto", "longe", "dentro",
    "cima", "baixo", "frente", "tras", "lado", "vez", "vezes",
})

STEMMER_LANGUAGE = "portuguese"

MAX_TOKEN_LENGTH = 50

# Substring -> feature name
BANKING_TERMS: dict[str, str] = {
    "tef": "bank:tef",
    "pix": "bank:pix",
    "transferencia": "bank:transfer",
    "saque": "bank:withdrawal",
    "deposito": "bank:deposit",
    "pgto": "bank:payment",
    "pagamento": "bank:payment",
    "compra": "bank:purchase",
    "debito": "bank:debit",
    "credito": "bank:credit",
}

CURRENCY_MARKERS = ("r$", "real")

# CPF (personal taxpayer id): 000.000.000-00
CPF_PATTERN = re.compile(r"\d{3}\.\d{3}\.\d{3}-\d{2}")
# CNPJ (company id): 00.000.000/0000-00
CNPJ_PATTERN = re.compile(r"\d{2}\.\d{3}\.\d{3}/\d{4}-\d{2}")

# Upper bounds are inclusive; anything above the last bound is very_large.
AMOUNT_BUCKETS: tuple[tuple[float, str], ...] = (
    (10.0, "very_small"),
    (50.0, "small"),
    (200.0, "medium"),
    (1000.0, "large"),
)


def amount_bucket(amount: float) -> str:
    for upper, name in AMOUNT_BUCKETS:
        if amount <= upper:
            return name
    return "very_large"

import re
import unicodedata


def normalize_text(value: str) -> str:
    """Casefold, strip accents and collapse whitespace; punctuation is kept."""
    if not value:
        return ""

    value = unicodedata.normalize("NFKD", value)
    value = "".join(char for char in value if not unicodedata.combining(char))
    value = value.casefold()
    value = re.sub(r"\s+", " ", value).strip()

    return value


def normalize_keyword(value: str) -> str:
    value = normalize_text(value)
    value = re.sub(r"[^\w\s]", " ", value)
    return re.sub(r"\s+", " ", value).strip()


def normalize_phone(value: str | None) -> str:
    """Reduce a phone number to ``+<digits>``.

    Web forms send ``+56 9 1234 5678`` while the Cloud API webhook sends
    ``56912345678``; both must land on the same consent key.
    """
    if not value:
        return ""

    digits = re.sub(r"\D", "", value)
    if value.strip().startswith("00") and digits.startswith("00"):
        digits = digits[2:]
    if not digits:
        return ""

    return f"+{digits}"

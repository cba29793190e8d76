"""Pattern vocabulary for sensitive data.

Shared by the sensitivity classifier (column names and sampled values) and
the ``random`` obfuscation method (shape-preserving fakes).  Vocabularies
cover English and Spanish column naming.
"""

import re

# Value shapes
EMAIL = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b", re.IGNORECASE)
CREDIT_CARD = re.compile(r"\b(?:\d[ -]*?){13,16}\b")
PHONE = re.compile(
    r"\b(?:\+?(\d{1,3}))?[-. (]*(\d{3})[-. )]*(\d{3})[-. ]*(\d{4})(?: *x(\d+))?\b"
)
PERSONAL_ID = re.compile(r"\b(\d{8}|\d{10}|\d{11})-?\w?\b", re.IGNORECASE)
ADDRESS = re.compile(
    r"\b(calle|avenida|av|plaza|paseo|street|avenue|road|boulevard|lane)\b",
    re.IGNORECASE,
)
PERSON_NAME_VALUE = re.compile(r"^[A-Za-z\sáéíóúÁÉÍÓÚñÑüÜ]+$")

# Column types whose values are inspected
TEXT_TYPE_FRAGMENTS = ("char", "text", "string", "clob")

# Unbounded free-text types
FREE_TEXT_TYPES = frozenset({"text", "ntext", "mediumtext", "longtext", "clob", "string"})


def term_pattern(*terms: str) -> re.Pattern[str]:
    """Match any of ``terms`` as a whole token of a column name.

    Underscores, dashes, dots and spaces separate tokens, so ``user_password``
    matches ``password`` while ``passenger`` does not match ``pass``.
    """
    alternation = "|".join(re.escape(t) for t in terms)
    return re.compile(rf"(?:^|[^a-z0-9])(?:{alternation})(?:$|[^a-z0-9])")


def normalize_column_name(name: str) -> str:
    """Lower-case a column name, splitting camelCase with underscores."""
    return re.sub(r"(?<=[a-z0-9])(?=[A-Z])", "_", name).lower()


def is_text_type(data_type: str) -> bool:
    lowered = data_type.lower()
    return any(fragment in lowered for fragment in TEXT_TYPE_FRAGMENTS)


def is_free_text_type(data_type: str) -> bool:
    return data_type.lower() in FREE_TEXT_TYPES

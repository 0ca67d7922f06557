import re

_LINE_BREAKS = re.compile(r"[\r\n]")
_NON_ALNUM = re.compile(r"[^A-Za-z0-9]")
_SEPARATORS = re.compile(r"\s+")


def normalize_text(raw_text: str) -> str:
    """Uppercase ``raw_text`` with every non-alphanumeric character replaced by a space."""
    if not raw_text:
        return ""
    text = _LINE_BREAKS.sub(" ", raw_text)
    text = _NON_ALNUM.sub(" ", text)
    return text.upper()


def tokenize(raw_text: str) -> list[str]:
    """
    Split recognizer output into ordered uppercase alphanumeric tokens.

    >>> tokenize("KA-51  AK\\n4247")
    ['KA', '51', 'AK', '4247']
    """
    return [t for t in _SEPARATORS.split(normalize_text(raw_text)) if t]

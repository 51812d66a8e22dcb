"""
Header and free-text normalization.
Pure functions shared by the column mapper, categorizer and entity resolver.
"""

import re
import unicodedata

_SEPARATOR_RUN = re.compile(r"[\s\-_]+")
_WHITESPACE_RUN = re.compile(r"\s+")


def strip_accents(text: str) -> str:
    """Remove combining diacritics: 'Lácteos' -> 'Lacteos'."""
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def fold_text(text: str) -> str:
    """Lowercase, accent-free, single-spaced. Used for keyword and name comparison."""
    if not text:
        return ""
    return _WHITESPACE_RUN.sub(" ", strip_accents(text).lower()).strip()


def normalize_header(header: str) -> str:
    """
    Normalize a column header for alias matching.

    'Fecha de Venta' -> 'fecha_de_venta', ' MONTO-TOTAL ' -> 'monto_total'.
    Total: never raises; empty input gives empty output.
    """
    if not header:
        return ""
    folded = strip_accents(header.strip().lower())
    return _SEPARATOR_RUN.sub("_", folded).strip("_")

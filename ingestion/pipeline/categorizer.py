"""
Keyword taxonomy classifier for invoice line-item descriptions.

Categories are tried in declaration order; the first one with a keyword
that is a substring of the folded description wins. Short keywords that
are also common word prefixes (pan, ron, sal) only match as whole words.
"""

import re

from ingestion.pipeline.header_normalizer import fold_text

UNCATEGORIZED = "uncategorized"

# Ordered: earlier categories shadow later ones on shared keywords.
# Keywords are stored accent-free; descriptions are folded before matching.
TAXONOMY: list[tuple[str, tuple[str, ...]]] = [
    ("lacteos", (
        "leche", "queso", "crema", "mantequilla", "yogurt", "yoghurt", "nata",
        "cottage", "philadelphia", "manchego", "oaxaca", "panela",
    )),
    ("proteinas", (
        "carne", "pollo", "bistec", "arrachera", "pescado", "salmon", "camaron",
        "atun", "cerdo", "puerco", "jamon", "salchicha", "tocino", "chorizo", "chicharron",
        "huevo",
    )),
    ("vegetales", (
        "tomate", "jitomate", "lechuga", "cebolla", "papa", "zanahoria", "chile",
        "pimiento", "aguacate", "calabaza", "espinaca", "brocoli",
    )),
    ("frutas", (
        "manzana", "naranja", "platano", "fresa", "pina", "mango", "sandia",
        "melon", "uva", "limon",
    )),
    ("granos", (
        "arroz", "frijol", "lenteja", "garbanzo", "avena", "trigo", "maiz", "quinoa",
    )),
    ("panaderia", (
        "pan", "bolillo", "tortilla", "baguette", "croissant", "galleta",
        "pastel", "masa", "harina",
    )),
    ("bebidas", (
        "refresco", "agua", "jugo", "cafe", "cerveza", "vino", "licor", "ron",
        "tequila", "mezcal",
    )),
    ("aceites", (
        "aceite", "manteca", "margarina", "spray",
    )),
    ("condimentos", (
        "sal", "pimienta", "vinagre", "salsa", "mayonesa", "mostaza",
        "ketchup", "soya", "ajo", "especias",
    )),
    ("desechables", (
        "plato", "vaso", "tenedor", "cuchara", "servilleta", "popote",
        "desechable", "papel", "bolsa",
    )),
    ("limpieza", (
        "cloro", "jabon", "detergente", "desinfectante", "escoba", "trapeador",
        "limpiador",
    )),
    ("congelados", (
        "helado", "congelado", "frozen", "hielo",
    )),
    ("enlatados", (
        "lata", "enlatado", "conserva",
    )),
]


# "sal" must not match "salsa", "pan" must not match "panela"
WHOLE_WORD_KEYWORDS = frozenset({"pan", "ron", "sal"})


def _pattern(keywords: tuple[str, ...]) -> re.Pattern:
    parts = [
        rf"\b{re.escape(k)}\b" if k in WHOLE_WORD_KEYWORDS else re.escape(k)
        for k in keywords
    ]
    return re.compile("|".join(parts))


_COMPILED = [(category, _pattern(keywords)) for category, keywords in TAXONOMY]


def categorize(description: str) -> str:
    """Classify a line-item description. Deterministic, pure and total."""
    text = fold_text(description)
    if not text:
        return UNCATEGORIZED

    for category, pattern in _COMPILED:
        if pattern.search(text):
            return category
    return UNCATEGORIZED

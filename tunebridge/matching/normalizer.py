"""
Track fingerprint normalization.

Turns a (title, artist) pair into a canonical string used to build
search queries and to compare tracks across platforms. The result is a
matching aid only, never an identity: two different songs can share a
key, and the same song can produce different keys on two platforms.

Steps, applied to each field:
    1. Trim and lowercase
    2. Fold accents (NFKD, combining marks dropped): "Beyoncé" -> "beyonce"
    3. Drop parenthetical/bracketed segments: "Song (Remastered 2011)" -> "song"
    4. Drop a featuring clause to the end of the field:
       "Song feat. Someone" -> "song"
    5. Replace punctuation with spaces
    6. Drop stoplist tokens (official, video, lyrics, ...)
    7. Collapse whitespace

All functions are pure and total: any string, including the empty
string, produces a result.
"""

import re
import unicodedata


# Tokens that carry upload metadata rather than track identity
STOPWORDS = frozenset({
    "official",
    "video",
    "lyrics",
    "lyric",
    "hd",
    "hq",
    "remastered",
})

_BRACKETED_RE = re.compile(r"[\(\[\{][^\(\)\[\]\{\}]*[\)\]\}]")
_FEATURING_RE = re.compile(r"\b(?:feat|ft|featuring)\b\.?.*$")
_PUNCTUATION_RE = re.compile(r"[^\w\s]")

KEY_SEPARATOR = "::"


def fold_accents(text: str) -> str:
    """Strip combining marks after compatibility decomposition."""
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def _drop_bracketed(text: str) -> str:
    # Innermost first, so nested "(a (b) c)" disappears entirely
    previous = None
    while previous != text:
        previous = text
        text = _BRACKETED_RE.sub(" ", text)
    return text


def normalize_text(text: str) -> str:
    """
    Normalize a single title or artist field.

    Idempotent: normalize_text(normalize_text(x)) == normalize_text(x).

    Examples:
        normalize_text("Midnight City (Official Video)")  # "midnight city"
        normalize_text("Señorita [HD] feat. Someone")     # "senorita"
        normalize_text("AC/DC")                           # "ac dc"
    """
    text = fold_accents(text.strip().lower())
    text = _drop_bracketed(text)
    text = _FEATURING_RE.sub("", text)
    text = _PUNCTUATION_RE.sub(" ", text)
    # NFKD can leave compatibility forms that lowercase differently
    tokens = [token for token in text.lower().split() if token not in STOPWORDS]
    return " ".join(tokens)


def normalize(title: str, artist: str) -> str:
    """
    Build the normalized key "{artist}::{title}".

    Example:
        normalize("Midnight City (Official Video)", "M83")  # "m83::midnight city"
    """
    return f"{normalize_text(artist)}{KEY_SEPARATOR}{normalize_text(title)}"


def search_query(title: str, artist: str) -> str:
    """
    Search string sent to a catalog: normalized title then artist.

    Falls back to the raw fields when normalization strips everything,
    so a title made only of stopwords still produces a query.
    """
    query = " ".join(part for part in (normalize_text(title), normalize_text(artist)) if part)
    if query:
        return query
    return " ".join(part for part in (title.strip(), artist.strip()) if part)

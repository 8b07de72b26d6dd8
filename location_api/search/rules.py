import re
import unicodedata
from enum import Enum
from typing import Dict


# postal codes and other numeric keys: digits only
NUMERIC_REGEX = re.compile(r'^[0-9]+$')

# "Ville - Zurich" -> region is whatever follows the last separator
REGION_SEPARATOR = ' - '

# characters that the dataset writes as hyphens in its name variants
KEY_SEPARATORS = [' ', '/', '\t']

# values of `code` meaning "no postal code"
EMPTY_CODES = {'', '0'}

DEFAULT_LABEL = 'Location'

# shown for an empty query, in this order
POPULAR_CITY_NAMES = [
    'Zürich', 'Genève', 'Basel', 'Bern', 'Lausanne',
    'Winterthur', 'Luzern', 'St. Gallen', 'Lugano', 'Biel/Bienne',
]


class LocationKind(str, Enum):
    CITY = 'ville'
    MUNICIPALITY = 'comm.'
    CANTON = 'cant.'
    DISTRICT = 'dist.'


class Locale(str, Enum):
    EN = 'en'
    FR = 'fr'
    DE = 'de'


TYPE_LABELS: Dict[LocationKind, Dict[Locale, str]] = {
    LocationKind.CITY: {Locale.EN: 'City', Locale.FR: 'Ville', Locale.DE: 'Stadt'},
    LocationKind.MUNICIPALITY: {Locale.EN: 'Municipality', Locale.FR: 'Commune', Locale.DE: 'Gemeinde'},
    LocationKind.CANTON: {Locale.EN: 'Canton', Locale.FR: 'Canton', Locale.DE: 'Kanton'},
    LocationKind.DISTRICT: {Locale.EN: 'District', Locale.FR: 'District', Locale.DE: 'Bezirk'},
}


def type_label(kind: str, locale: Locale = Locale.EN) -> str:
    try:
        labels = TYPE_LABELS[LocationKind(kind)]
    except ValueError:
        return DEFAULT_LABEL
    try:
        return labels[Locale(locale)]
    except ValueError:
        return labels[Locale.EN]


def normalize_key(text: str) -> str:
    return text.strip().lower()


def fold_accents(text: str) -> str:
    """'Zürich' -> 'Zurich', 'Neuchâtel' -> 'Neuchatel'."""
    nfkd = unicodedata.normalize('NFKD', text)
    return ''.join(c for c in nfkd if not unicodedata.combining(c))


def is_numeric(text: str) -> bool:
    return bool(NUMERIC_REGEX.match(text))


def code_key(code) -> str:
    """Index key for a postal code, or '' when the record has none."""
    if code is None:
        return ''
    key = normalize_key(str(code))
    if key in EMPTY_CODES:
        return ''
    return key

import re
import zlib

DEFAULT_CATEGORY = "Genel"
SPORTS_CATEGORY = "Spor"

# group-title spellings seen upstream -> one canonical (Turkish) category
CATEGORY_SYNONYMS = {
    "sports": SPORTS_CATEGORY,
    "sport": SPORTS_CATEGORY,
    "spor": SPORTS_CATEGORY,
    "football": SPORTS_CATEGORY,
    "soccer": SPORTS_CATEGORY,
    "futbol": SPORTS_CATEGORY,
    "basketball": SPORTS_CATEGORY,
    "basketbol": SPORTS_CATEGORY,
    "tennis": SPORTS_CATEGORY,
    "tenis": SPORTS_CATEGORY,
    "volleyball": SPORTS_CATEGORY,
    "voleybol": SPORTS_CATEGORY,
    "news": "Haber",
    "haber": "Haber",
    "entertainment": "Eğlence",
    "eğlence": "Eğlence",
    "movies": "Film",
    "movie": "Film",
    "film": "Film",
    "sinema": "Film",
    "music": "Müzik",
    "müzik": "Müzik",
    "documentary": "Belgesel",
    "belgesel": "Belgesel",
    "kids": "Çocuk",
    "çocuk": "Çocuk",
    "series": "Dizi",
    "dizi": "Dizi",
    "general": DEFAULT_CATEGORY,
    "genel": DEFAULT_CATEGORY,
}

VIEWER_RANGES = {
    SPORTS_CATEGORY: (5000, 50000),
    "Haber": (1000, 15000),
    "Eğlence": (500, 10000),
    "Film": (1000, 20000),
    "Müzik": (500, 8000),
    "Belgesel": (300, 5000),
    "Çocuk": (800, 12000),
    "Dizi": (1500, 18000),
}
DEFAULT_VIEWER_RANGE = (500, 5000)

SPORT_KEYWORDS = (
    "sport", "spor", "bein", "ssport", "smart", "trt", "aspor",
    "tivibu", "euroleague", "nba", "futbol", "football", "basketbol",
    "voleybol", "tenis", "motor", "formula", "uefa", "fifa",
    "galatasaray", "fenerbahce", "besiktas", "trabzonspor",
    "champions", "league", "premier", "bundesliga", "laliga",
)

# name pattern -> alias used as the channel number, checked in order
CHANNEL_ALIASES = (
    (("s sport 2", "ssport 2"), "S2"),
    (("s sport", "ssport"), "S"),
    (("smart",), "SM"),
    (("trt",), "TRT"),
    (("aspor", "a spor"), "A"),
)

TURKISH_ALPHABET = "abcçdefgğhıijklmnoöpqrsştuüvwxyz"
_ALPHABET_INDEX = {ch: i for i, ch in enumerate(TURKISH_ALPHABET)}


def turkish_lower(text):
    return text.replace("I", "ı").replace("İ", "i").lower()


def collation_key(text):
    """Sort key ordering strings the way Turkish readers expect (ç after c, ı before i, ...)."""
    key = []
    for ch in turkish_lower(text):
        if ch in _ALPHABET_INDEX:
            key.append((1, _ALPHABET_INDEX[ch]))
        elif ch.isdigit():
            key.append((0, ord(ch)))
        else:
            key.append((2, ord(ch)))
    return tuple(key)


def normalize_category(group):
    cleaned = (group or "").strip()
    if not cleaned:
        return DEFAULT_CATEGORY
    # "FILM" and "DİZİ" only lowercase correctly under one of the two rules
    for lowered in (cleaned.lower(), turkish_lower(cleaned)):
        if lowered in CATEGORY_SYNONYMS:
            return CATEGORY_SYNONYMS[lowered]
        # prefixed groups such as "TR | Spor" or "Sports HD"
        for word in re.split(r"\W+", lowered):
            if word in CATEGORY_SYNONYMS:
                return CATEGORY_SYNONYMS[word]
    return cleaned


def is_sport_channel(name, group):
    text = f"{name} {group}".lower()
    return any(keyword in text for keyword in SPORT_KEYWORDS)


def synthetic_viewers(name, category):
    """Made-up viewer count; stable for a given name so re-parsing gives the same catalog."""
    low, high = VIEWER_RANGES.get(category, DEFAULT_VIEWER_RANGE)
    return low + zlib.crc32(name.encode("utf-8")) % (high - low + 1)


def channel_number(name):
    lowered = name.lower()
    for patterns, alias in CHANNEL_ALIASES:
        if any(pattern in lowered for pattern in patterns):
            return alias
    match = re.search(r"(\d+)", name)
    if match:
        return int(match.group(1))
    return name[:1].upper()


def _number_key(channel):
    if isinstance(channel.sort_key, int):
        return (0, channel.sort_key, ())
    return (1, 0, collation_key(str(channel.sort_key)))


def sort_by_number(channels):
    """Numbered channels ascending, then alias channels in collation order."""
    return sorted(channels, key=_number_key)


def sort_by_category(channels):
    """Category in collation order, busiest channels first within a category."""
    return sorted(channels, key=lambda ch: (collation_key(ch.category), -ch.viewers))


SORT_POLICIES = {
    "number": sort_by_number,
    "category": sort_by_category,
}


def sorted_categories(channels):
    return sorted({ch.category for ch in channels}, key=collation_key)

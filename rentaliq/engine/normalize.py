"""Address normalization and blocking keys for deduplication.

Pure functions, no I/O. Normalized form: uppercase, no punctuation, unit and
suite designators stripped, street types and directionals spelled out.
"""

import re

from rentaliq.models.property import Address

# USPS Publication 28 suffix abbreviations (common subset)
STREET_TYPES: dict[str, str] = {
    "ALY": "ALLEY",
    "AVE": "AVENUE",
    "AV": "AVENUE",
    "AVN": "AVENUE",
    "BLVD": "BOULEVARD",
    "BND": "BEND",
    "CIR": "CIRCLE",
    "CT": "COURT",
    "CTS": "COURTS",
    "CV": "COVE",
    "CRK": "CREEK",
    "CRES": "CRESCENT",
    "XING": "CROSSING",
    "DR": "DRIVE",
    "EXPY": "EXPRESSWAY",
    "FWY": "FREEWAY",
    "GRV": "GROVE",
    "HTS": "HEIGHTS",
    "HWY": "HIGHWAY",
    "HOLW": "HOLLOW",
    "LN": "LANE",
    "LOOP": "LOOP",
    "MNR": "MANOR",
    "PARK": "PARK",
    "PKWY": "PARKWAY",
    "PASS": "PASS",
    "PATH": "PATH",
    "PIKE": "PIKE",
    "PL": "PLACE",
    "PLZ": "PLAZA",
    "PT": "POINT",
    "RD": "ROAD",
    "RDG": "RIDGE",
    "RUN": "RUN",
    "SQ": "SQUARE",
    "ST": "STREET",
    "STR": "STREET",
    "TER": "TERRACE",
    "TRCE": "TRACE",
    "TRL": "TRAIL",
    "TPKE": "TURNPIKE",
    "VW": "VIEW",
    "VIS": "VISTA",
    "WALK": "WALK",
    "WAY": "WAY",
    "WY": "WAY",
}

DIRECTIONALS: dict[str, str] = {
    "N": "NORTH",
    "S": "SOUTH",
    "E": "EAST",
    "W": "WEST",
    "NE": "NORTHEAST",
    "NW": "NORTHWEST",
    "SE": "SOUTHEAST",
    "SW": "SOUTHWEST",
}

UNIT_DESIGNATORS = frozenset({
    "APT", "APARTMENT", "UNIT", "STE", "SUITE", "BLDG", "BUILDING",
    "FL", "FLOOR", "RM", "ROOM", "SPC", "SPACE", "LOT", "#",
})

_FULL_STREET_TYPES = frozenset(STREET_TYPES.values())
_FULL_DIRECTIONALS = frozenset(DIRECTIONALS.values())
_PUNCTUATION = re.compile(r"[^\w\s#]")
_SOUNDEX_CODES = {
    **dict.fromkeys("BFPV", "1"),
    **dict.fromkeys("CGJKQSXZ", "2"),
    **dict.fromkeys("DT", "3"),
    "L": "4",
    **dict.fromkeys("MN", "5"),
    "R": "6",
}


def _tokens(street: str) -> list[str]:
    cleaned = _PUNCTUATION.sub(" ", street.upper()).replace("#", " # ")
    return cleaned.split()


def _split_unit(tokens: list[str]) -> tuple[list[str], str]:
    """Separate unit/suite designators (and the value after each) from the street."""
    kept: list[str] = []
    unit_parts: list[str] = []
    i = 0
    while i < len(tokens):
        tok = tokens[i]
        if tok in UNIT_DESIGNATORS and kept:
            # 'APT # 4': the value follows any bare '#'
            j = i + 1
            while j < len(tokens) and tokens[j] == "#":
                j += 1
            if j < len(tokens):
                unit_parts.append(tokens[j])
            i = j + 1
            continue
        kept.append(tok)
        i += 1
    return kept, " ".join(unit_parts)


def normalize_street(street: str) -> str:
    """'123 n. Main St., Apt #4' -> '123 NORTH MAIN STREET'."""
    tokens, _ = _split_unit(_tokens(street or ""))
    if not tokens:
        return ""

    expanded = [DIRECTIONALS.get(tok, tok) for tok in tokens]

    # Expand the street type only in suffix position (last token before any
    # trailing directional) so 'ST JAMES PL' keeps its leading 'ST'.
    idx = len(expanded) - 1
    while idx > 0 and expanded[idx] in _FULL_DIRECTIONALS:
        idx -= 1
    if idx > 0:
        expanded[idx] = STREET_TYPES.get(expanded[idx], expanded[idx])

    return " ".join(expanded)


def extract_unit(street: str, unit: str = "") -> str:
    """Unit designator value from an explicit unit field or embedded in the street."""
    if unit:
        _, explicit = _split_unit(["X", *_tokens(unit)])
        return explicit or " ".join(_tokens(unit))
    _, embedded = _split_unit(_tokens(street or ""))
    return embedded


def normalize_zip(zip_code: str) -> str:
    digits = re.sub(r"\D", "", zip_code or "")
    return digits[:5]


def house_number(normalized_street: str) -> str:
    first = normalized_street.split(" ", 1)[0] if normalized_street else ""
    return first if first[:1].isdigit() else ""


def street_name_core(normalized_street: str) -> str:
    """Street name without house number, directionals, or street type."""
    tokens = normalized_street.split()
    if tokens and house_number(normalized_street):
        tokens = tokens[1:]
    core = [t for t in tokens if t not in _FULL_DIRECTIONALS]
    if len(core) > 1 and core[-1] in _FULL_STREET_TYPES:
        core = core[:-1]
    return " ".join(core)


def soundex(word: str) -> str:
    """American Soundex code, e.g. 'ROBERT' -> 'R163'. Empty input -> ''."""
    letters = [c for c in word.upper() if c.isalpha()]
    if not letters:
        return ""
    first = letters[0]
    code = first
    prev = _SOUNDEX_CODES.get(first, "")
    for c in letters[1:]:
        digit = _SOUNDEX_CODES.get(c, "")
        if digit and digit != prev:
            code += digit
            if len(code) == 4:
                break
        # H and W do not separate letters with the same code
        if c not in "HW":
            prev = digit
    return code.ljust(4, "0")


def normalize_address(address: Address) -> str:
    """Full normalized comparison string: street + ZIP."""
    street = normalize_street(address.street)
    zip5 = normalize_zip(address.zip_code)
    return f"{street} {zip5}".strip()


def blocking_key(address: Address) -> str:
    """ZIP + house number + Soundex of the street-name core."""
    street = normalize_street(address.street)
    core = street_name_core(street)
    first_word = core.split(" ", 1)[0] if core else ""
    return f"{normalize_zip(address.zip_code)}|{house_number(street)}|{soundex(first_word)}"

"""
Southern region classification.

A static table of the five southern Indian states (Tamil Nadu, Kerala,
Karnataka, Andhra Pradesh, Telangana) with their postal codes, common
misspellings and spacing variants.

Matching normalizes case, whitespace and hyphens, then:
- two-letter codes ("TN", "KL", ...) must match the whole input exactly;
- longer names match by containment in either direction, so "Tamil Nadu,
  India" and "Tamil" both classify as southern. The reverse direction (alias
  contains input) needs at least four characters of input, otherwise single
  letters would match every alias.
"""

import re
from typing import Dict, Iterable, List, Optional

SOUTHERN_REGIONS: Dict[str, List[str]] = {
    "Tamil Nadu": ["TN", "Tamil Nadu", "Tamilnadu", "Tamil-Nadu"],
    "Kerala": ["KL", "Kerala", "Kerela"],
    "Karnataka": ["KA", "Karnataka", "Karnatka", "Karnātaka"],
    "Andhra Pradesh": ["AP", "Andhra Pradesh", "Andhra", "AndhraPradesh", "Andhra-Pradesh"],
    "Telangana": ["TG", "TS", "Telangana", "Telengana", "Telagana"],
}

CODE_LENGTH = 2
MIN_PARTIAL_LENGTH = 4

_SEPARATORS = re.compile(r"[-\s]+")


def normalize_region(value: str) -> str:
    return _SEPARATORS.sub("", value.strip().lower())


class RegionClassifier:
    """Classifies regions as members of the southern set"""

    def __init__(self, regions: Optional[Dict[str, Iterable[str]]] = None):
        table = regions if regions is not None else SOUTHERN_REGIONS
        self._codes: Dict[str, str] = {}
        self._names: Dict[str, str] = {}
        for canonical, aliases in table.items():
            for alias in [canonical, *aliases]:
                normalized = normalize_region(alias)
                if len(normalized) <= CODE_LENGTH:
                    self._codes[normalized] = canonical
                else:
                    self._names[normalized] = canonical

    def canonical_name(self, region: Optional[str]) -> Optional[str]:
        """Return the canonical southern region name, or None"""
        if not region or not region.strip():
            return None

        normalized = normalize_region(region)
        if normalized in self._codes:
            return self._codes[normalized]

        for alias, canonical in self._names.items():
            if alias in normalized:
                return canonical
            if len(normalized) >= MIN_PARTIAL_LENGTH and normalized in alias:
                return canonical
        return None

    def is_southern(self, region: Optional[str]) -> bool:
        return self.canonical_name(region) is not None


default_classifier = RegionClassifier()


def is_southern(region: Optional[str]) -> bool:
    return default_classifier.is_southern(region)

"""
Taiwanese address parsing for the geographic breakdown.

Only the city/county and the district/town are extracted; everything
after them (road, lane, number) is ignored.
"""

import re
from dataclasses import dataclass

CITY_PATTERN = re.compile(r"([一-龥]{2,3}(?:縣|市))")
DISTRICT_PATTERN = re.compile(r"([一-龥]{2,4}(?:區|市|鎮|鄉))")

OTHER_DISTRICT = "其他"


@dataclass(slots=True, frozen=True)
class ParsedAddress:
    city: str
    district: str

    @property
    def label(self) -> str:
        return f"{self.city} {self.district}" if self.city else self.district


@dataclass(slots=True, frozen=True)
class UnparsedAddress:
    raw: str

    @property
    def label(self) -> str:
        return OTHER_DISTRICT


def parse_address(address: str) -> ParsedAddress | UnparsedAddress:
    city_match = CITY_PATTERN.search(address)
    city = city_match.group(1) if city_match else ""

    # Strip the city first so 高雄市 is not read as the district 雄市
    remainder = address.replace(city, "", 1) if city else address
    district_match = DISTRICT_PATTERN.search(remainder)

    if not city and not district_match:
        return UnparsedAddress(raw=address)
    return ParsedAddress(
        city=city,
        district=district_match.group(1) if district_match else OTHER_DISTRICT,
    )

# file: app/services/panchang_service.py

import json
import math
import random
import logging
from abc import ABC, abstractmethod
from datetime import date, datetime, time
from pathlib import Path
from typing import List, Optional, Tuple, Union

import httpx
from pydantic import ValidationError

from app.config import Settings
from app.models.panchang import (
    DEFAULT_LOCATION, Festival, FestivalEntry, Karana, Location, Muhurat, Nakshatra,
    PanchangDate, PanchangSnapshot, Tithi, Yoga,
)

logger = logging.getLogger(__name__)

MAX_UPCOMING_FESTIVALS = 8
FESTIVAL_WINDOW_DAYS = 365

# Curated 2025-2026 dates (DrikPanchang)
FESTIVALS = [
    # 2025 (remaining)
    FestivalEntry(name="Ganesh Chaturthi", date="2025-08-27", type="Major Festival"),
    FestivalEntry(name="Dussehra", date="2025-10-02", type="Major Festival"),
    FestivalEntry(name="Karwa Chauth", date="2025-10-10", type="Vrat"),
    FestivalEntry(name="Diwali", date="2025-10-20", type="Major Festival"),
    FestivalEntry(name="Govardhan Puja", date="2025-10-22", type="Festival"),
    FestivalEntry(name="Guru Nanak Jayanti", date="2025-11-05", type="Major Festival"),
    # 2026
    FestivalEntry(name="Makar Sankranti", date="2026-01-14", type="Major Festival"),
    FestivalEntry(name="Vasant Panchami", date="2026-02-02", type="Festival"),
    FestivalEntry(name="Maha Shivratri", date="2026-02-26", type="Major Festival"),
    FestivalEntry(name="Holi", date="2026-03-14", type="Major Festival"),
    FestivalEntry(name="Ram Navami", date="2026-04-06", type="Major Festival"),
    FestivalEntry(name="Buddha Purnima", date="2026-05-12", type="Festival"),
    FestivalEntry(name="Raksha Bandhan", date="2026-08-09", type="Festival"),
    FestivalEntry(name="Janmashtami", date="2026-08-15", type="Major Festival"),
]

TITHIS = [
    ("प्रतिपदा", "Pratipada"), ("द्वितीया", "Dwitiya"), ("तृतीया", "Tritiya"),
    ("चतुर्थी", "Chaturthi"), ("पंचमी", "Panchami"), ("षष्ठी", "Shashthi"),
    ("सप्तमी", "Saptami"), ("अष्टमी", "Ashtami"), ("नवमी", "Navami"),
    ("दशमी", "Dashami"), ("एकादशी", "Ekadashi"), ("द्वादशी", "Dwadashi"),
    ("त्रयोदशी", "Trayodashi"), ("चतुर्दशी", "Chaturdashi"), ("पूर्णिमा", "Purnima"),
]

NAKSHATRAS = [
    ("अश्विनी", "Ashwini"), ("भरणी", "Bharani"), ("कृत्तिका", "Krittika"),
    ("रोहिणी", "Rohini"), ("मृगशिरा", "Mrigashira"), ("आर्द्रा", "Ardra"),
    ("पुनर्वसु", "Punarvasu"), ("पुष्य", "Pushya"), ("आश्लेषा", "Ashlesha"),
    ("मघा", "Magha"), ("पूर्व फाल्गुनी", "Purva Phalguni"), ("उत्तर फाल्गुनी", "Uttara Phalguni"),
    ("हस्त", "Hasta"), ("चित्रा", "Chitra"), ("स्वाती", "Swati"),
    ("विशाखा", "Vishakha"), ("अनुराधा", "Anuradha"), ("ज्येष्ठा", "Jyeshtha"),
    ("मूल", "Mula"), ("पूर्वाषाढ़ा", "Purva Ashadha"), ("उत्तराषाढ़ा", "Uttara Ashadha"),
    ("श्रवण", "Shravana"), ("धनिष्ठा", "Dhanishta"), ("शतभिषा", "Shatabhisha"),
    ("पूर्व भाद्रपद", "Purva Bhadrapada"), ("उत्तर भाद्रपद", "Uttara Bhadrapada"), ("रेवती", "Revati"),
]

YOGAS = [
    ("विष्कम्भ", "Vishkambha"), ("प्रीति", "Priti"), ("आयुष्मान", "Ayushman"),
    ("सौभाग्य", "Saubhagya"), ("शोभन", "Shobhana"), ("अतिगण्ड", "Atiganda"),
    ("सुकर्मा", "Sukarma"), ("धृति", "Dhriti"), ("शूल", "Shula"),
    ("गण्ड", "Ganda"), ("वृद्धि", "Vriddhi"), ("ध्रुव", "Dhruva"),
    ("व्याघात", "Vyaghata"), ("हर्षण", "Harshana"), ("वज्र", "Vajra"),
    ("सिद्धि", "Siddhi"), ("व्यतीपात", "Vyatipata"), ("वरीयान", "Variyana"),
    ("परिघ", "Parigha"), ("शिव", "Shiva"), ("सिद्ध", "Siddha"),
    ("साध्य", "Sadhya"), ("शुभ", "Shubha"), ("शुक्ल", "Shukla"),
    ("ब्रह्म", "Brahma"), ("इन्द्र", "Indra"), ("वैधृति", "Vaidhriti"),
]

KARANAS = [
    ("बव", "Bava"), ("बालव", "Balava"), ("कौलव", "Kaulava"), ("तैतिल", "Taitila"),
    ("गर", "Gara"), ("वणिज", "Vanija"), ("विष्टि", "Vishti"), ("शकुनि", "Shakuni"),
    ("चतुष्पद", "Chatushpada"), ("नाग", "Naga"), ("किंस्तुघ्न", "Kimstughna"),
]

NAKSHATRA_LORDS = ["Ketu", "Venus", "Sun", "Moon", "Mars", "Rahu", "Jupiter", "Saturn", "Mercury"]

HINDI_MONTHS = [
    "जनवरी", "फरवरी", "मार्च", "अप्रैल", "मई", "जून",
    "जुलाई", "अगस्त", "सितंबर", "अक्टूबर", "नवंबर", "दिसंबर",
]

SPECIAL_MESSAGES = [
    "आज का दिन भगवान की कृपा से भरपूर है।",
    "आज धर्म और सत्य के मार्ग पर चलने का शुभ दिन है।",
    "आज मन को शांत रखकर ध्यान करने का उत्तम समय है।",
    "आज दान और पुण्य करने से विशेष फल मिलता है।",
    "आज गुरु और ईश्वर की आराधना करने का पावन दिन है।",
]

FESTIVAL_DESCRIPTIONS = {
    "Janmashtami": "Celebration of Lord Krishna's birth with devotion and joy",
    "Ganesh Chaturthi": "Festival honoring Lord Ganesha, the remover of obstacles",
    "Diwali": "Festival of lights celebrating victory of good over evil",
    "Holi": "Festival of colors celebrating spring and divine love",
    "Navratri": "Nine nights of worship dedicated to Goddess Durga",
    "Dussehra": "Celebration of Lord Rama's victory over Ravana",
    "Karva Chauth": "Sacred fast observed by married women for their husbands",
    "Raksha Bandhan": "Festival celebrating the bond between brothers and sisters",
    "Maha Shivratri": "Great night of Lord Shiva, time for spiritual awakening",
    "Ram Navami": "Celebration of Lord Rama's birth and divine qualities",
    "Hanuman Jayanti": "Birthday of Lord Hanuman, symbol of devotion and strength",
    "Guru Purnima": "Day to honor and thank our teachers and gurus",
    "Chhath Puja": "Ancient festival dedicated to Sun God and Chhathi Maiya",
}
DEFAULT_FESTIVAL_DESCRIPTION = "Sacred Hindu festival bringing blessings and spiritual significance"

FESTIVAL_SIGNIFICANCE = {
    "Major Festival": "High spiritual significance - ideal for prayers and rituals",
    "Festival": "Auspicious day for devotion and celebration",
    "Vrat": "Fasting day for spiritual purification and blessings",
    "Auspicious Day": "Highly favorable time for new beginnings",
    "Period": "Sacred time period with special observances",
}
DEFAULT_FESTIVAL_SIGNIFICANCE = "Spiritually significant day for devotees"

SHUKLA_PAKSHA = "शुक्ल पक्ष"
KRISHNA_PAKSHA = "कृष्ण पक्ष"


# --- HELPER FUNCTIONS ---

def _as_naive_datetime(value: Union[date, datetime]) -> datetime:
    # datetime is a subclass of date, so check it first
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    return datetime.combine(value, time.min)


def get_days_until(target: Union[str, date], current: Union[date, datetime]) -> int:
    """Whole days from `current` to midnight of `target`, rounded up."""
    if isinstance(target, str):
        target = date.fromisoformat(target)
    diff = _as_naive_datetime(target) - _as_naive_datetime(current)
    return math.ceil(diff.total_seconds() / 86400)


def get_festival_description(festival_name: str) -> str:
    lowered = festival_name.lower()
    for key, description in FESTIVAL_DESCRIPTIONS.items():
        if key.lower() in lowered:
            return description
    return DEFAULT_FESTIVAL_DESCRIPTION


def get_festival_significance(festival_type: str) -> str:
    return FESTIVAL_SIGNIFICANCE.get(festival_type, DEFAULT_FESTIVAL_SIGNIFICANCE)


def get_moon_phase(tithi_index: int) -> str:
    if tithi_index < 4:
        return "New Moon Phase"
    if tithi_index < 8:
        return "Waxing Crescent"
    if tithi_index < 11:
        return "First Quarter"
    if tithi_index < 15:
        return "Waxing Gibbous"
    return "Full Moon Phase"


def get_upcoming_festivals(current: Union[date, datetime], table: Optional[List[FestivalEntry]] = None) -> List[Festival]:
    """
    Festivals between 1 and 365 days away, nearest first, at most 8 of them.
    """
    entries = FESTIVALS if table is None else table
    with_days = [(entry, get_days_until(entry.date, current)) for entry in entries]
    upcoming = sorted(
        ((entry, days) for entry, days in with_days if 0 < days <= FESTIVAL_WINDOW_DAYS),
        key=lambda pair: pair[1],
    )[:MAX_UPCOMING_FESTIVALS]

    return [
        Festival(
            name=entry.name,
            date=entry.date,
            type=entry.type,
            days=days,
            description=get_festival_description(entry.name),
            significance=get_festival_significance(entry.type),
            is_today=days == 0,
            is_tomorrow=days == 1,
            is_this_week=days <= 7,
        )
        for entry, days in upcoming
    ]


def load_festival_calendar(path: Union[str, Path]) -> List[FestivalEntry]:
    """Reads a JSON list of {name, date, type} rows."""
    with Path(path).open(encoding="utf-8") as f:
        rows = json.load(f)
    return [FestivalEntry.model_validate(row) for row in rows]


def panchang_indices(current: Union[date, datetime]) -> Tuple[int, int, int, int]:
    day, month, year = current.day, current.month, current.year
    return (
        (day + month) % len(TITHIS),
        (day + month * 2) % len(NAKSHATRAS),
        (day + month + year) % len(YOGAS),
        (day * 2) % len(KARANAS),
    )


def generate_mock_panchang(
        current: Union[date, datetime],
        location: Location = DEFAULT_LOCATION,
        festival_table: Optional[List[FestivalEntry]] = None,
        rng: Optional[random.Random] = None,
) -> PanchangSnapshot:
    """
    Builds a repeatable Panchang for a calendar date from fixed lookup tables.
    This is a placeholder feed, not an astronomical calculation; only
    `tithi.percentage` varies between calls for the same date.
    """
    rng = rng or random
    day, month, year = current.day, current.month, current.year
    tithi_index, nakshatra_index, yoga_index, karana_index = panchang_indices(current)

    tithi_name, tithi_english = TITHIS[tithi_index]
    nakshatra_name, nakshatra_english = NAKSHATRAS[nakshatra_index]
    yoga_name, yoga_english = YOGAS[yoga_index]
    karana_name, karana_english = KARANAS[karana_index]

    return PanchangSnapshot(
        date=PanchangDate(
            gregorian=f"{day}/{month}/{year}",
            hindi=f"{day} {HINDI_MONTHS[month - 1]} {year}",
            vikram_samvat=year + 57,
            shaka_samvat=year - 78,
        ),
        location=location,
        sunrise="06:24 AM",
        sunset="06:48 PM",
        moonrise="10:15 AM",
        moonset="09:32 PM",
        tithi=Tithi(name=tithi_name, english=tithi_english, end_time="11:45 AM tomorrow",
                    percentage=rng.randrange(100)),
        nakshatra=Nakshatra(name=nakshatra_name, english=nakshatra_english, end_time="08:22 PM",
                            lord=NAKSHATRA_LORDS[nakshatra_index % len(NAKSHATRA_LORDS)]),
        yoga=Yoga(name=yoga_name, english=yoga_english, end_time="02:15 PM"),
        karana=Karana(name=karana_name, english=karana_english, end_time="11:45 AM tomorrow"),
        muhurat=Muhurat(
            brahma="05:45 AM - 06:35 AM",
            abhijit="12:06 PM - 12:54 PM",
            vijaya="02:18 PM - 03:06 PM",
            godhuli="06:40 PM - 07:05 PM",
        ),
        rahukaal="02:00 PM - 03:30 PM",
        yamaganda="10:30 AM - 12:00 PM",
        gulika="07:30 AM - 09:00 AM",
        festivals=get_upcoming_festivals(current, festival_table),
        special_message=SPECIAL_MESSAGES[day % len(SPECIAL_MESSAGES)],
        is_auspicious_day=(day + month) % 3 == 0,
        moon_phase=get_moon_phase(tithi_index),
        paksha=SHUKLA_PAKSHA if tithi_index < 15 else KRISHNA_PAKSHA,
        source="mock",
    )


# --- PROVIDERS ---

class PanchangProvider(ABC):
    name = "base"

    @abstractmethod
    async def get_snapshot(self, current: datetime, location: Location = DEFAULT_LOCATION) -> PanchangSnapshot:
        ...


class StaticMockProvider(PanchangProvider):
    name = "static"

    def __init__(self, festival_table: Optional[List[FestivalEntry]] = None):
        self.festival_table = festival_table

    async def get_snapshot(self, current: datetime, location: Location = DEFAULT_LOCATION) -> PanchangSnapshot:
        return generate_mock_panchang(current, location, self.festival_table)


class RemoteApiProvider(PanchangProvider):
    """
    Panchang from panchang.click and festival dates from AstrologyAPI.
    Any missing credential or failed request falls back to the static tables.
    """
    name = "remote"

    def __init__(
            self,
            api_key: Optional[str],
            api_base: str = "https://panchang.click/api",
            astrology_user: Optional[str] = None,
            astrology_key: Optional[str] = None,
            astrology_base: str = "https://json.astrologyapi.com/v1",
            timeout: float = 10.0,
            fallback: Optional[StaticMockProvider] = None,
    ):
        self.api_key = api_key
        self.api_base = api_base.rstrip("/")
        self.astrology_user = astrology_user
        self.astrology_key = astrology_key
        self.astrology_base = astrology_base.rstrip("/")
        self.timeout = timeout
        self.fallback = fallback or StaticMockProvider()

    async def fetch_festivals(self, current: datetime, location: Location = DEFAULT_LOCATION) -> Optional[List[FestivalEntry]]:
        if not self.astrology_user or not self.astrology_key:
            logger.info("AstrologyAPI credentials not found, using curated festival table")
            return None

        payload = {
            "day": current.day,
            "month": current.month,
            "year": current.year,
            "hour": 12,
            "min": 0,
            "lat": location.latitude,
            "lon": location.longitude,
            "tzone": location.timezone,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.astrology_base}/panchang_festival",
                    json=payload,
                    auth=(self.astrology_user, self.astrology_key),
                )
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"AstrologyAPI festival fetch error: {e}")
            return None

        entries = []
        for row in (data or {}).get("festivals") or []:
            try:
                entries.append(FestivalEntry.model_validate(row))
            except ValidationError:
                logger.debug(f"Skipping festival row without name/date/type: {row!r}")
        return entries or None

    async def get_snapshot(self, current: datetime, location: Location = DEFAULT_LOCATION) -> PanchangSnapshot:
        if not self.api_key:
            logger.warning("No Panchang API key found, using mock data")
            return await self.fallback.get_snapshot(current, location)

        payload = {
            "year": current.year,
            "month": current.month,
            "date": current.day,
            "latitude": location.latitude,
            "longitude": location.longitude,
            "timezone": location.timezone,
        }
        headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(f"{self.api_base}/panchang", json=payload, headers=headers)
                response.raise_for_status()
                data = response.json()
            snapshot = PanchangSnapshot.model_validate(data.get("data", data) if isinstance(data, dict) else data)
        except (httpx.HTTPError, ValueError) as e:
            # pydantic's ValidationError is a ValueError
            logger.error(f"Real Panchang API error: {e}")
            return await self.fallback.get_snapshot(current, location)

        table = await self.fetch_festivals(current, location)
        snapshot.festivals = get_upcoming_festivals(current, table if table is not None else self.fallback.festival_table)
        snapshot.source = "remote"
        return snapshot


def create_panchang_provider(settings: Settings) -> PanchangProvider:
    table = load_festival_calendar(settings.festival_calendar_path) if settings.festival_calendar_path else None
    static = StaticMockProvider(festival_table=table)
    if settings.panchang_provider == "static":
        return static
    if settings.panchang_provider == "remote":
        return RemoteApiProvider(
            api_key=settings.panchang_api_key,
            api_base=settings.panchang_api_base,
            astrology_user=settings.astrology_api_user,
            astrology_key=settings.astrology_api_key,
            astrology_base=settings.astrology_api_base,
            timeout=settings.http_timeout,
            fallback=static,
        )
    raise ValueError(f"Unknown PANCHANG_PROVIDER '{settings.panchang_provider}'. Expected 'static' or 'remote'.")


# --- SERVICE ---

class PanchangService:
    """Serves today's Panchang from a provider, cached per calendar day and location."""

    def __init__(self, provider: PanchangProvider, cache_enabled: bool = True):
        self.provider = provider
        self.cache_enabled = cache_enabled
        self._cache = {}

    def invalidate(self):
        self._cache.clear()

    async def get_todays_panchang(self, location: Optional[Location] = None, now: Optional[datetime] = None) -> PanchangSnapshot:
        location = location or DEFAULT_LOCATION
        now = now or datetime.now()
        key = (_as_naive_datetime(now).date(), location.latitude, location.longitude, location.place)

        if self.cache_enabled and key in self._cache:
            return self._cache[key]

        logger.info(f"Fetching fresh Panchang data from {self.provider.name} provider")
        snapshot = await self.provider.get_snapshot(now, location)
        if self.cache_enabled:
            # Only today's entry is worth keeping
            self._cache = {k: v for k, v in self._cache.items() if k[0] == key[0]}
            self._cache[key] = snapshot
        return snapshot

    async def get_upcoming_festivals(self, now: Optional[datetime] = None) -> List[Festival]:
        snapshot = await self.get_todays_panchang(now=now)
        return snapshot.festivals

# file: app/models/panchang.py

from pydantic import Field
from app.models.base import CamelModel
from typing import Optional, List
from datetime import datetime


class Location(CamelModel):
    latitude: float = 28.6139
    longitude: float = 77.2090
    timezone: float = 5.5
    place: str = "Delhi, India"


DEFAULT_LOCATION = Location()


class FestivalEntry(CamelModel):
    """A row of the festival calendar before it is annotated for a given day."""
    name: str
    date: str
    type: str


class Festival(FestivalEntry):
    days: int
    description: str
    significance: str
    is_today: bool = False
    is_tomorrow: bool = False
    is_this_week: bool = False


class PanchangDate(CamelModel):
    gregorian: str
    hindi: str
    vikram_samvat: int
    shaka_samvat: int


class Tithi(CamelModel):
    name: str
    english: str
    end_time: str
    percentage: int


class Nakshatra(CamelModel):
    name: str
    english: str
    end_time: str
    lord: str


class Yoga(CamelModel):
    name: str
    english: str
    end_time: str


class Karana(CamelModel):
    name: str
    english: str
    end_time: str


class Muhurat(CamelModel):
    brahma: str
    abhijit: str
    vijaya: str
    godhuli: str


class PanchangSnapshot(CamelModel):
    date: PanchangDate
    location: Location
    sunrise: str
    sunset: str
    moonrise: str
    moonset: str
    tithi: Tithi
    nakshatra: Nakshatra
    yoga: Yoga
    karana: Karana
    muhurat: Muhurat
    rahukaal: str
    yamaganda: str
    gulika: str
    festivals: List[Festival] = Field(default_factory=list)
    special_message: str
    is_auspicious_day: bool
    moon_phase: str
    paksha: str
    source: Optional[str] = None


class Mantra(CamelModel):
    id: int
    text: str
    text_english: str
    meaning: str
    meaning_hi: str


class DailyPanchang(CamelModel):
    sunrise: str
    sunset: str
    moonrise: str
    moonset: str
    tithi: Tithi
    nakshatra: Nakshatra
    yoga: Yoga
    karana: Karana
    muhurat: Muhurat
    rahukaal: str
    paksha: str
    moon_phase: str
    is_auspicious_day: bool


class DailyGuide(CamelModel):
    date: PanchangDate
    location: Location
    panchang: DailyPanchang
    todays_mantra: Mantra
    upcoming_festivals: List[Festival] = Field(default_factory=list)
    special_message: str
    generated: datetime

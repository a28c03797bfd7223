# file: app/services/daily_guide.py

from datetime import date, datetime
from typing import List, Optional, Union

from app.models.panchang import DailyGuide, DailyPanchang, Mantra, PanchangSnapshot

MANTRAS = [
    Mantra(id=1, text="ॐ गं गणपतये नमः", text_english="Om Gam Ganapataye Namaha",
           meaning="Salutations to Lord Ganesha, the remover of obstacles",
           meaning_hi="विघ्न हर्ता भगवान गणेश को प्रणाम"),
    Mantra(id=2, text="ॐ नमः शिवाय", text_english="Om Namah Shivaya",
           meaning="I bow to Lord Shiva, the auspicious one",
           meaning_hi="मैं भगवान शिव को नमन करता हूँ"),
    Mantra(id=3, text="ॐ नमो भगवते वासुदेवाय", text_english="Om Namo Bhagavate Vasudevaya",
           meaning="I bow to Lord Vasudeva, the all-pervading",
           meaning_hi="सर्वव्यापी भगवान वासुदेव को नमन"),
    Mantra(id=4, text="हरे कृष्ण हरे कृष्ण कृष्ण कृष्ण हरे हरे",
           text_english="Hare Krishna Hare Krishna Krishna Krishna Hare Hare",
           meaning="Calling upon the divine energy of Lord Krishna",
           meaning_hi="भगवान कृष्ण की दिव्य शक्ति का आह्वान"),
    Mantra(id=5, text="ॐ श्री हनुमते नमः", text_english="Om Shri Hanumate Namaha",
           meaning="Salutations to Lord Hanuman, the embodiment of devotion and strength",
           meaning_hi="भक्ति और शक्ति के स्वरूप हनुमान जी को प्रणाम"),
]


def sunday_first_weekday(current: Union[date, datetime]) -> int:
    """0 = Sunday ... 6 = Saturday."""
    return (current.weekday() + 1) % 7


def get_todays_mantra(current: Union[date, datetime], mantras: Optional[List[Mantra]] = None) -> Mantra:
    mantras = mantras or MANTRAS
    return mantras[sunday_first_weekday(current) % len(mantras)]


def build_daily_guide(snapshot: PanchangSnapshot, current: datetime) -> DailyGuide:
    return DailyGuide(
        date=snapshot.date,
        location=snapshot.location,
        panchang=DailyPanchang(
            sunrise=snapshot.sunrise,
            sunset=snapshot.sunset,
            moonrise=snapshot.moonrise,
            moonset=snapshot.moonset,
            tithi=snapshot.tithi,
            nakshatra=snapshot.nakshatra,
            yoga=snapshot.yoga,
            karana=snapshot.karana,
            muhurat=snapshot.muhurat,
            rahukaal=snapshot.rahukaal,
            paksha=snapshot.paksha,
            moon_phase=snapshot.moon_phase,
            is_auspicious_day=snapshot.is_auspicious_day,
        ),
        todays_mantra=get_todays_mantra(current),
        upcoming_festivals=snapshot.festivals,
        special_message=snapshot.special_message,
        generated=datetime.now(),
    )

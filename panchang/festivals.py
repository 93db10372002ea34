from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, List, Optional, Tuple

from .elements import AMANTA_MONTHS, NAKSHATRA_NAMES, SIGN_NAMES, tithi_abs
from .errors import ConfigurationError
from .models import (ARUNODAYA, KRISHNA, MADHYAHNA, NIGHT, SHUKLA, SUNRISE,
                     FestivalOccurrence, PanchangDay)

logger = logging.getLogger(__name__)

_MONTH = {name: i for i, name in enumerate(AMANTA_MONTHS)}
_SIGN = {name: i for i, name in enumerate(SIGN_NAMES)}
_NAKSHATRA = {name: i for i, name in enumerate(NAKSHATRA_NAMES)}

SMARTHA, VAISHNAVA = "smartha", "vaishnava"
TRADITIONS = (SMARTHA, VAISHNAVA)


# ---------------- Rule kinds -------------------
@dataclass(frozen=True)
class Rule:
    key: str
    name: str
    english_name: str
    description: str = ""
    is_auspicious: bool = True

    type = ""

    def matches(self, day: PanchangDay) -> bool:
        raise NotImplementedError

    def repeats(self, prev: PanchangDay, day: PanchangDay) -> bool:
        """True when a match on ``day`` continues the one on the previous day ``prev``."""
        return False

    def occurrence(self, day: PanchangDay) -> FestivalOccurrence:
        return FestivalOccurrence(key=self.key, name=self.name, english_name=self.english_name,
                                  date=day.date, type=self.type,
                                  is_auspicious=self.is_auspicious, description=self.description)


@dataclass(frozen=True)
class TithiRule(Rule):
    tithi: int = 1                       # absolute, 1..30
    lunar_month: Optional[int] = None    # amanta, 0 = Chaitra
    at: str = SUNRISE                    # instant the tithi must prevail at

    type = "tithi"

    def tithi_of(self, day: PanchangDay) -> Optional[int]:
        return {
            SUNRISE: day.tithi_index,
            ARUNODAYA: day.arunodaya_tithi_index,
            MADHYAHNA: day.madhyahna_tithi_index,
            NIGHT: day.night_tithi_index,
        }[self.at]

    def matches(self, day: PanchangDay) -> bool:
        # only the sunrise tithi can fall back on a kshaya tithi
        candidates = (day.tithi_index, day.kshaya_tithi_index) if self.at == SUNRISE else (self.tithi_of(day),)
        for t in candidates:
            if t is None or t != self.tithi:
                continue
            if self.lunar_month is None:
                return True
            if _lunar_month_of(day, t) == self.lunar_month and not _in_adhika(day, t):
                return True
        return False

    def repeats(self, prev: PanchangDay, day: PanchangDay) -> bool:
        return (self.tithi_of(prev) == self.tithi_of(day)
                and prev.lunar_month_index == day.lunar_month_index)


@dataclass(frozen=True)
class EkadashiRule(TithiRule):
    """Fortnightly Ekadashi, named after its amanta month."""
    names: Tuple[str, ...] = ()          # by lunar month, 0 = Chaitra
    adhika_name: str = ""

    def occurrence(self, day: PanchangDay) -> FestivalOccurrence:
        occ = super().occurrence(day)
        month = _lunar_month_of(day, self.tithi)
        if _in_adhika(day, self.tithi):
            label = self.adhika_name
        elif month is not None and self.names:
            label = self.names[month]
        else:
            return occ
        return FestivalOccurrence(key=occ.key, name=f"{label} Ekadashi", english_name=occ.english_name,
                                  date=occ.date, type=occ.type, is_auspicious=occ.is_auspicious,
                                  description=occ.description)


@dataclass(frozen=True)
class NakshatraRule(Rule):
    nakshatra: int = 0
    solar_month: Optional[int] = None

    type = "nakshatra"

    def matches(self, day: PanchangDay) -> bool:
        if day.nakshatra_index != self.nakshatra:
            return False
        return self.solar_month is None or day.solar_month_index == self.solar_month

    def repeats(self, prev: PanchangDay, day: PanchangDay) -> bool:
        return (prev.nakshatra_index == day.nakshatra_index
                and prev.solar_month_index == day.solar_month_index)


@dataclass(frozen=True)
class SolarRule(Rule):
    solar_month: int = 0                 # sign being entered

    type = "solar"

    def matches(self, day: PanchangDay) -> bool:
        if not day.solar_ingress or day.solar_month_index is None:
            return False
        return (day.solar_month_index + 1) % 12 == self.solar_month


def _lunar_month_of(day: PanchangDay, t: int) -> Optional[int]:
    # a tithi more than a fortnight away from the sunrise tithi lies across a new moon
    if day.lunar_month_index is None or day.tithi_index is None:
        return None
    if day.tithi_index - t > 15:
        return (day.lunar_month_index + 1) % 12
    if t - day.tithi_index > 15:
        return (day.lunar_month_index - 1) % 12
    return day.lunar_month_index


def _in_adhika(day: PanchangDay, t: int) -> bool:
    return day.is_adhika and _lunar_month_of(day, t) == day.lunar_month_index


# ---------------- Rule builders ----------------
def _tithi(key, name, paksha, ordinal, month=None, desc="", english=None, auspicious=True, at=SUNRISE):
    return TithiRule(key=key, name=name, english_name=english or name, description=desc,
                     is_auspicious=auspicious, tithi=tithi_abs(paksha, ordinal),
                     lunar_month=_MONTH[month] if month else None, at=at)


def _ekadashi(key, paksha, names, adhika_name, desc, at):
    english = f"{paksha} Ekadashi"
    return EkadashiRule(key=key, name=english, english_name=english, description=desc,
                        tithi=tithi_abs(paksha, 11), at=at, names=names, adhika_name=adhika_name)


def _star(key, name, star, sign=None, desc="", english=None):
    return NakshatraRule(key=key, name=name, english_name=english or name, description=desc,
                         nakshatra=_NAKSHATRA[star], solar_month=_SIGN[sign] if sign else None)


def _sankranti(key, name, sign, desc="", english=None):
    return SolarRule(key=key, name=name, english_name=english or name, description=desc,
                     solar_month=_SIGN[sign])


# ---------------- Tables -----------------------
# amanta months, Chaitra first
SHUKLA_EKADASHI_NAMES = ("Kamada", "Mohini", "Nirjala", "Devshayani", "Shravana Putrada", "Parsva",
                         "Papankusha", "Prabodhini", "Mokshada", "Pausha Putrada", "Jaya", "Amalaki")
KRISHNA_EKADASHI_NAMES = ("Varuthini", "Apara", "Yogini", "Kamika", "Aja", "Indira",
                          "Rama", "Utpanna", "Saphala", "Shattila", "Vijaya", "Papamochani")

# Smartha: Ekadashi at sunrise. Vaishnava: Ekadashi already at arunodaya,
# so a Dashami-touched day moves the fast to the following day.
EKADASHI: Dict[str, Tuple[Rule, ...]] = {
    tradition: (
        _ekadashi("shukla_ekadashi", SHUKLA, SHUKLA_EKADASHI_NAMES, "Padmini",
                  "Fortnightly fast, waxing moon.", at),
        _ekadashi("krishna_ekadashi", KRISHNA, KRISHNA_EKADASHI_NAMES, "Parama",
                  "Fortnightly fast, waning moon.", at),
    )
    for tradition, at in ((SMARTHA, SUNRISE), (VAISHNAVA, ARUNODAYA))
}

RECURRING: Tuple[Rule, ...] = (
    _tithi("vinayaka_chaturthi", "Vinayaka Chaturthi", SHUKLA, 4, desc="Monthly Ganesha vrata."),
    _tithi("sankashti_chaturthi", "Sankashti Chaturthi", KRISHNA, 4, desc="Krishna Chaturthi, fast until moonrise."),
    _tithi("shukla_pradosh", "Pradosh Vrat", SHUKLA, 13, desc="Trayodashi evening worship of Shiva."),
    _tithi("krishna_pradosh", "Pradosh Vrat", KRISHNA, 13, desc="Trayodashi evening worship of Shiva."),
    _tithi("masik_shivaratri", "Masik Shivaratri", KRISHNA, 14, desc="Monthly Krishna Chaturdashi night.",
           at=NIGHT),
    _tithi("purnima", "Purnima", SHUKLA, 15, desc="Full moon day.", english="Full Moon"),
    _tithi("amavasya", "Amavasya", KRISHNA, 15, desc="New moon day.", english="New Moon", auspicious=False),
    _star("pushya_nakshatra", "Pushya Nakshatra", "Pushya", desc="Moon in Pushya; favoured for purchases."),
)

PAN_INDIAN: Tuple[Rule, ...] = (
    _sankranti("makar_sankranti", "Makara Sankranti", "Makara", "Sun enters sidereal Makara.",
               english="Makar Sankranti"),
    _tithi("vasant_panchami", "Vasant Panchami", SHUKLA, 5, "Magha", "Saraswati Puja."),
    _tithi("maha_shivaratri", "Maha Shivaratri", KRISHNA, 14, "Magha", "Great night of Shiva.",
           at=NIGHT),
    _tithi("holika_dahan", "Holika Dahan", SHUKLA, 15, "Phalguna", "Phalguna Purnima bonfire."),
    _tithi("holi", "Holi", KRISHNA, 1, "Phalguna", "Festival of colours, day after Phalguna Purnima."),
    _tithi("ram_navami", "Rama Navami", SHUKLA, 9, "Chaitra", "Birth of Lord Rama, at midday.",
           english="Ram Navami", at=MADHYAHNA),
    _tithi("hanuman_jayanti", "Hanuman Jayanti", SHUKLA, 15, "Chaitra", "Chaitra Purnima."),
    _tithi("akshaya_tritiya", "Akshaya Tritiya", SHUKLA, 3, "Vaishakha", "Day of lasting prosperity."),
    _tithi("buddha_purnima", "Buddha Purnima", SHUKLA, 15, "Vaishakha", "Vaishakha Purnima."),
    _tithi("guru_purnima", "Guru Purnima", SHUKLA, 15, "Ashadha", "Honouring teachers."),
    _tithi("nag_panchami", "Nag Panchami", SHUKLA, 5, "Shravana", "Shravana Shukla Panchami."),
    _tithi("raksha_bandhan", "Raksha Bandhan", SHUKLA, 15, "Shravana", "Shravana Purnima.",
           english="Rakhi"),
    _tithi("janmashtami", "Krishna Janmashtami", KRISHNA, 8, "Shravana", "Birth of Lord Krishna, at night.",
           english="Janmashtami", at=NIGHT),
    _tithi("ganesh_chaturthi", "Ganesh Chaturthi", SHUKLA, 4, "Bhadrapada", "Bhadrapada Shukla Chaturthi."),
    _tithi("anant_chaturdashi", "Anant Chaturdashi", SHUKLA, 14, "Bhadrapada", "Ganesha visarjan."),
    _tithi("pitru_paksha", "Pitru Paksha begins", KRISHNA, 1, "Bhadrapada",
           "Fortnight of ancestral rites.", auspicious=False),
    _tithi("mahalaya_amavasya", "Mahalaya Amavasya", KRISHNA, 15, "Bhadrapada",
           "End of Pitru Paksha.", auspicious=False),
    _tithi("navaratri", "Sharad Navaratri begins", SHUKLA, 1, "Ashwin", "Ghatasthapana."),
    _tithi("durga_ashtami", "Durga Ashtami", SHUKLA, 8, "Ashwin", "Maha Ashtami."),
    _tithi("maha_navami", "Maha Navami", SHUKLA, 9, "Ashwin", "Ninth day of Navaratri."),
    _tithi("vijayadashami", "Vijayadashami", SHUKLA, 10, "Ashwin", "Victory of good over evil.",
           english="Dussehra"),
    _tithi("sharad_purnima", "Sharad Purnima", SHUKLA, 15, "Ashwin", "Ashwin Purnima."),
    _tithi("dhanteras", "Dhanteras", KRISHNA, 13, "Ashwin", "Dhanatrayodashi."),
    _tithi("naraka_chaturdashi", "Naraka Chaturdashi", KRISHNA, 14, "Ashwin", "Choti Diwali."),
    _tithi("diwali", "Deepavali", KRISHNA, 15, "Ashwin", "Lakshmi Puja on Ashwin Amavasya.",
           english="Diwali"),
    _tithi("govardhan_puja", "Govardhan Puja", SHUKLA, 1, "Kartika", "Annakut, day after Diwali."),
    _tithi("bhai_dooj", "Bhai Dooj", SHUKLA, 2, "Kartika", "Yama Dwitiya."),
    _tithi("kartik_purnima", "Kartik Purnima", SHUKLA, 15, "Kartika", "Dev Deepavali."),
)

REGIONAL: Dict[str, Tuple[Rule, ...]] = {
    "universal": (),
    "north_indian": (
        _sankranti("baisakhi", "Baisakhi", "Mesha", "Solar new year, harvest festival."),
        _tithi("hariyali_teej", "Hariyali Teej", SHUKLA, 3, "Shravana", "Monsoon Teej."),
        _tithi("karwa_chauth", "Karwa Chauth", KRISHNA, 4, "Ashwin", "Fast until moonrise."),
        _tithi("chhath_puja", "Chhath Puja", SHUKLA, 6, "Kartika", "Surya Shashthi."),
        _tithi("guru_nanak_jayanti", "Guru Nanak Jayanti", SHUKLA, 15, "Kartika", "Gurpurab."),
    ),
    "south_indian": (
        _tithi("ugadi", "Ugadi", SHUKLA, 1, "Chaitra", "Lunisolar new year."),
        _tithi("vaikuntha_ekadashi", "Vaikuntha Ekadashi", SHUKLA, 11, "Pausha", "Gates of Vaikuntha open."),
    ),
    "marathi": (
        _tithi("gudi_padwa", "Gudi Padwa", SHUKLA, 1, "Chaitra", "Maharashtra new year."),
        _tithi("hartalika_teej", "Hartalika Teej", SHUKLA, 3, "Bhadrapada", "Day before Ganesh Chaturthi."),
    ),
    "bengali": (
        _sankranti("poila_boishakh", "Pohela Boishakh", "Mesha", "Bengali new year.",
                   english="Bengali New Year"),
        _tithi("maha_shashthi", "Maha Shashthi", SHUKLA, 6, "Ashwin", "Durga Puja begins."),
        _tithi("kojagari_lakshmi_puja", "Kojagari Lakshmi Puja", SHUKLA, 15, "Ashwin", "Ashwin Purnima."),
    ),
    "tamil": (
        _sankranti("puthandu", "Puthandu", "Mesha", "Tamil new year.", english="Tamil New Year"),
        _sankranti("pongal", "Thai Pongal", "Makara", "Harvest festival, first of Thai.",
                   english="Pongal"),
        _star("thai_pusam", "Thaipusam", "Pushya", "Makara", "Pusam nakshatra in Thai."),
        _star("karthigai_deepam", "Karthigai Deepam", "Krittika", "Vrishchika",
              "Krittika nakshatra in Karthigai."),
    ),
    "malayalam": (
        _sankranti("vishu", "Vishu", "Mesha", "Kerala new year."),
        _star("onam", "Thiruvonam", "Shravana", "Simha", "Thiruvonam nakshatra in Chingam.",
              english="Onam"),
    ),
}


@dataclass(frozen=True)
class RuleTable:
    region: str
    rules: Tuple[Rule, ...]
    tradition: str = SMARTHA


def regions() -> List[str]:
    return sorted(REGIONAL)


def get_rule_table(region: str, tradition: str = SMARTHA) -> RuleTable:
    try:
        extra = REGIONAL[region]
    except KeyError:
        raise ConfigurationError(f"Unknown festival region {region!r}",
                                 details={"region": region, "known": regions()}) from None
    if tradition not in EKADASHI:
        raise ConfigurationError(f"Unknown Ekadashi tradition {tradition!r}",
                                 details={"tradition": tradition, "known": list(TRADITIONS)})
    return RuleTable(region, PAN_INDIAN + extra + EKADASHI[tradition] + RECURRING, tradition)


# ---------------- Engine -----------------------
def match_day(day: PanchangDay, table: RuleTable) -> List[FestivalOccurrence]:
    """Every rule in ``table`` matching ``day``, in table order."""
    if not day.available:
        return []
    return [rule.occurrence(day) for rule in table.rules if rule.matches(day)]


def match_days(days: Iterable[PanchangDay], table: RuleTable) -> List[FestivalOccurrence]:
    """
    Occurrences over a run of days, by date then table order. When a tithi or
    nakshatra prevails on two consecutive days, a rule that matched the first
    day is not reported again on the second.
    """
    out: List[FestivalOccurrence] = []
    last_matched: Dict[str, date] = {}
    prev: Optional[PanchangDay] = None
    for day in sorted(days, key=lambda d: d.date):
        if not day.available:
            prev = None
            continue
        follows = prev is not None and (day.date - prev.date).days == 1
        for rule in table.rules:
            if not rule.matches(day):
                continue
            if follows and last_matched.get(rule.key) == prev.date and rule.repeats(prev, day):
                continue
            last_matched[rule.key] = day.date
            out.append(rule.occurrence(day))
        prev = day
    return out


def festivals_for_days(days: Iterable[PanchangDay], region: str,
                       tradition: str = SMARTHA) -> List[FestivalOccurrence]:
    table = get_rule_table(region, tradition)
    out = match_days(days, table)
    logger.debug("Matched %d festival occurrences for region %s (%s)", len(out), region, tradition)
    return out

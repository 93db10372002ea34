"""
Unit tests for festival rule tables and matching.
"""

from datetime import date, timedelta

import pytest

from panchang.elements import AMANTA_MONTHS, NAKSHATRA_NAMES, SIGN_NAMES, tithi_name
from panchang.errors import ConfigurationError
from panchang.festivals import (EKADASHI, PAN_INDIAN, RECURRING, REGIONAL,
                                SolarRule, TithiRule, festivals_for_days,
                                get_rule_table, match_day, match_days, regions)
from panchang.models import NIGHT, PanchangDay


def make_day(d, tithi, month="Magha", kshaya=None, star="Ashwini", sign="Makara", ingress=False,
             arunodaya=None, madhyahna=None, night=None, adhika=False):
    return PanchangDay(
        date=d,
        tithi_index=tithi, tithi_name=tithi_name(tithi),
        nakshatra_index=NAKSHATRA_NAMES.index(star), nakshatra_name=star,
        lunar_month_index=AMANTA_MONTHS.index(month), lunar_month_name=month,
        solar_month_index=SIGN_NAMES.index(sign), solar_ingress=ingress,
        kshaya_tithi_index=kshaya,
        is_amavasya=tithi == 30, is_purnima=tithi == 15,
        arunodaya_tithi_index=arunodaya or tithi,
        madhyahna_tithi_index=madhyahna or tithi,
        night_tithi_index=night or tithi,
        is_adhika=adhika,
    )


def keys(occurrences):
    return [f.key for f in occurrences]


class TestRuleTables:
    """Tests for region lookup."""

    def test_regions(self):
        assert "universal" in regions()
        assert "tamil" in regions()
        assert regions() == sorted(REGIONAL)

    def test_unknown_region(self):
        with pytest.raises(ConfigurationError) as exc_info:
            get_rule_table("atlantis")

        assert exc_info.value.details["region"] == "atlantis"

    def test_unknown_tradition(self):
        with pytest.raises(ConfigurationError) as exc_info:
            get_rule_table("universal", "iskcon")

        assert exc_info.value.details["known"] == ["smartha", "vaishnava"]

    def test_table_composition(self):
        table = get_rule_table("tamil")

        assert table.rules[:len(PAN_INDIAN)] == PAN_INDIAN
        assert table.rules[-len(RECURRING):] == RECURRING
        assert "pongal" in [r.key for r in table.rules]
        assert "pongal" not in [r.key for r in get_rule_table("universal").rules]
        assert table.tradition == "smartha"

    def test_unique_keys(self):
        for region in regions():
            for tradition in EKADASHI:
                ks = [r.key for r in get_rule_table(region, tradition).rules]
                assert len(ks) == len(set(ks)), (region, tradition)


class TestTithiRules:
    """Tests for lunar-date festivals."""

    def test_month_bound_and_recurring(self):
        day = make_day(date(2025, 2, 26), 29, "Magha")

        assert keys(match_day(day, get_rule_table("universal"))) == ["maha_shivaratri", "masik_shivaratri"]

    def test_wrong_month(self):
        day = make_day(date(2025, 3, 27), 29, "Phalguna")

        assert keys(match_day(day, get_rule_table("universal"))) == ["masik_shivaratri"]

    def test_kshaya_tithi_is_observed(self):
        day = make_day(date(2025, 2, 1), 4, "Magha", kshaya=5)
        found = keys(match_day(day, get_rule_table("universal")))

        assert "vasant_panchami" in found
        assert "vinayaka_chaturthi" in found

    def test_kshaya_pratipada_after_amavasya_belongs_to_next_month(self):
        day = make_day(date(2025, 10, 21), 30, "Ashwin", kshaya=1)
        found = keys(match_day(day, get_rule_table("universal")))

        assert "diwali" in found
        assert "govardhan_puja" in found
        assert "navaratri" not in found

    def test_amavasya_not_auspicious(self):
        day = make_day(date(2025, 1, 29), 30, "Pausha")
        occ = {f.key: f for f in match_day(day, get_rule_table("universal"))}

        assert not occ["amavasya"].is_auspicious
        assert occ["amavasya"].english_name == "New Moon"
        assert occ["amavasya"].type == "tithi"


class TestObservanceTime:
    """Tests for festivals keyed on the tithi at night, midday or arunodaya."""

    def test_shivaratri_follows_the_night_tithi(self):
        evening = make_day(date(2025, 2, 26), 28, "Magha", night=29)
        after = make_day(date(2025, 2, 27), 29, "Magha", night=30)
        table = get_rule_table("universal")

        assert "maha_shivaratri" in keys(match_day(evening, table))
        assert "maha_shivaratri" not in keys(match_day(after, table))
        assert "krishna_pradosh" in keys(match_day(evening, table))

    def test_night_tithi_does_not_use_kshaya(self):
        day = make_day(date(2025, 2, 26), 28, "Magha", kshaya=29)

        assert "maha_shivaratri" not in keys(match_day(day, get_rule_table("universal")))

    def test_janmashtami_at_night(self):
        day = make_day(date(2025, 8, 15), 22, "Shravana", night=23)

        assert "janmashtami" in keys(match_day(day, get_rule_table("universal")))

    def test_ram_navami_at_madhyahna(self):
        table = get_rule_table("universal")

        assert "ram_navami" in keys(match_day(make_day(date(2025, 4, 5), 8, "Chaitra", madhyahna=9), table))
        assert "ram_navami" not in keys(match_day(make_day(date(2025, 4, 6), 9, "Chaitra", madhyahna=10), table))

    def test_night_after_new_moon_counts_in_next_month(self):
        # sunrise Amavasya of Phalguna, Pratipada (of Chaitra) by night
        day = make_day(date(2025, 3, 29), 30, "Phalguna", night=1)

        assert _lunar_rule_match(day, tithi=1, month="Chaitra")
        assert not _lunar_rule_match(day, tithi=1, month="Phalguna")


def _lunar_rule_match(day, tithi, month):
    rule = TithiRule(key="x", name="x", english_name="x", tithi=tithi,
                     lunar_month=AMANTA_MONTHS.index(month), at=NIGHT)
    return rule.matches(day)


class TestConsecutiveDays:
    """Tests for a tithi or nakshatra prevailing at two sunrises."""

    def test_festival_reported_once_on_first_day(self):
        start = date(2025, 1, 11)
        days = [make_day(start, 11), make_day(start + timedelta(days=1), 11),
                make_day(start + timedelta(days=2), 12)]

        out = match_days(days, get_rule_table("universal"))

        assert [f.date for f in out if f.key == "shukla_ekadashi"] == [start]

    def test_month_bound_festival_once(self):
        start = date(2025, 2, 1)
        days = [make_day(start, 5), make_day(start + timedelta(days=1), 5)]

        out = match_days(days, get_rule_table("universal"))

        assert [f.date for f in out if f.key == "vasant_panchami"] == [start]

    def test_gap_in_days_reports_both(self):
        first = make_day(date(2025, 1, 11), 11)
        later = make_day(date(2025, 1, 13), 11)

        out = match_days([first, later], get_rule_table("universal"))

        assert len([f for f in out if f.key == "shukla_ekadashi"]) == 2

    def test_unavailable_day_between_breaks_the_run(self):
        days = [make_day(date(2025, 1, 11), 11),
                PanchangDay.unavailable(date(2025, 1, 12), "no data"),
                make_day(date(2025, 1, 13), 11)]

        out = match_days(days, get_rule_table("universal"))

        assert len([f for f in out if f.key == "shukla_ekadashi"]) == 2

    def test_nakshatra_on_two_sunrises(self):
        start = date(2025, 1, 14)
        days = [make_day(start, 14, star="Pushya"), make_day(start + timedelta(days=1), 15, star="Pushya")]

        out = match_days(days, get_rule_table("universal"))

        assert [f.date for f in out if f.key == "pushya_nakshatra"] == [start]

    def test_kshaya_then_next_tithi(self):
        start = date(2025, 2, 1)
        days = [make_day(start, 4, kshaya=5), make_day(start + timedelta(days=1), 6)]

        out = match_days(days, get_rule_table("universal"))

        assert [f.date for f in out if f.key == "vasant_panchami"] == [start]


class TestEkadashi:
    """Tests for named Ekadashis and the two observance traditions."""

    def test_named_after_the_month(self):
        table = get_rule_table("universal")
        shukla = match_day(make_day(date(2025, 2, 8), 11, "Magha"), table)
        krishna = match_day(make_day(date(2025, 3, 25), 26, "Phalguna"), table)

        assert shukla[0].key == "shukla_ekadashi"
        assert shukla[0].name == "Jaya Ekadashi"
        assert shukla[0].english_name == "Shukla Ekadashi"
        assert krishna[0].name == "Papamochani Ekadashi"

    def test_adhika_month_name(self):
        day = make_day(date(2026, 5, 27), 11, "Jyeshtha", adhika=True)
        occ = match_day(day, get_rule_table("universal"))

        assert occ[0].name == "Padmini Ekadashi"

    def test_vaishnava_skips_a_dashami_touched_day(self):
        viddha = make_day(date(2025, 1, 11), 11, arunodaya=10)
        next_day = make_day(date(2025, 1, 12), 12, arunodaya=11)
        smartha = match_days([viddha, next_day], get_rule_table("universal", "smartha"))
        vaishnava = match_days([viddha, next_day], get_rule_table("universal", "vaishnava"))

        assert [f.date for f in smartha if f.key == "shukla_ekadashi"] == [date(2025, 1, 11)]
        assert [f.date for f in vaishnava if f.key == "shukla_ekadashi"] == [date(2025, 1, 12)]
        assert "Jaya" in vaishnava[0].name

    def test_traditions_agree_on_a_clean_ekadashi(self):
        day = make_day(date(2025, 1, 11), 11)

        assert keys(match_day(day, get_rule_table("universal", "vaishnava"))) == ["shukla_ekadashi"]


class TestAdhikaMonth:
    """Tests for the intercalary month."""

    def test_month_bound_rules_suppressed(self):
        day = make_day(date(2028, 8, 5), 15, "Shravana", adhika=True)
        found = keys(match_day(day, get_rule_table("universal")))

        assert "purnima" in found
        assert "raksha_bandhan" not in found
        assert "raksha_bandhan" in keys(match_day(make_day(date(2028, 9, 4), 15, "Shravana"),
                                                  get_rule_table("universal")))

    def test_nija_month_matches(self):
        day = make_day(date(2025, 7, 10), 15, "Ashadha")

        assert "guru_purnima" in keys(match_day(day, get_rule_table("universal")))
        assert "guru_purnima" not in keys(match_day(make_day(date(2025, 7, 10), 15, "Ashadha", adhika=True),
                                                    get_rule_table("universal")))


class TestNakshatraAndSolarRules:
    """Tests for nakshatra and sankranti festivals."""

    def test_onam(self):
        day = make_day(date(2025, 9, 5), 13, "Bhadrapada", star="Shravana", sign="Simha")

        assert "onam" in keys(match_day(day, get_rule_table("malayalam")))
        assert "onam" not in keys(match_day(day, get_rule_table("tamil")))

    def test_pushya_every_month(self):
        day = make_day(date(2025, 1, 10), 11, star="Pushya")

        assert "pushya_nakshatra" in keys(match_day(day, get_rule_table("universal")))

    def test_sankranti_on_ingress_day(self):
        day = make_day(date(2025, 1, 14), 16, "Pausha", sign="Dhanu", ingress=True)
        occ = match_day(day, get_rule_table("tamil"))

        assert keys(occ)[:1] == ["makar_sankranti"]
        assert "pongal" in keys(occ)
        assert occ[0].type == "solar"

    def test_no_sankranti_without_ingress(self):
        day = make_day(date(2025, 1, 13), 15, "Pausha", sign="Dhanu")

        assert "makar_sankranti" not in keys(match_day(day, get_rule_table("universal")))

    def test_solar_rule_wraps_to_mesha(self):
        rule = SolarRule(key="x", name="x", english_name="x", solar_month=0)

        assert rule.matches(make_day(date(2025, 4, 13), 16, sign="Mina", ingress=True))


class TestMatching:
    """Tests for matching over many days."""

    def test_unavailable_day_matches_nothing(self):
        day = PanchangDay.unavailable(date(2025, 1, 1), "no sunrise at this location")

        assert match_day(day, get_rule_table("universal")) == []

    def test_sorted_and_deterministic(self):
        start = date(2025, 1, 1)
        days = [make_day(start + timedelta(days=i), i + 1) for i in range(30)]
        table = get_rule_table("north_indian")

        first = match_days(reversed(days), table)
        second = match_days(days, table)

        assert first == second
        assert [f.date for f in first] == sorted(f.date for f in first)

    def test_festivals_for_days(self):
        day = make_day(date(2025, 2, 2), 5, "Magha")

        out = festivals_for_days([day], "universal")

        assert keys(out) == ["vasant_panchami"]
        assert out[0].to_dict()["date"] == "2025-02-02"

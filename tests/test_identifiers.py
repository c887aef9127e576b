import random
import re
import unittest
from datetime import datetime, timedelta, timezone

from app.services.identifiers import (
    asset_fragment,
    epoch_millis,
    generate_identifiers,
    make_folio,
    make_verification_code,
    serial_fragment,
)

CODE_PATTERN = re.compile(r"^ZIII-[A-Z0-9]{4}-[A-Z0-9]{4}-[A-Z0-9]+-[A-Z0-9]{4}$")
FOLIO_PATTERN = re.compile(r"^BAJA-\d{8}-\d{9}$")


class FolioTests(unittest.TestCase):
    def test_folio_uses_calendar_fields_zero_padded(self):
        now = datetime(2025, 3, 7, 4, 5, 6, 7000)
        self.assertEqual(make_folio(now), "BAJA-20250307-040506007")

    def test_folio_has_fixed_width(self):
        for now in (datetime(2025, 1, 1), datetime(2025, 12, 31, 23, 59, 59, 999999)):
            self.assertRegex(make_folio(now), FOLIO_PATTERN)

    def test_folios_sort_in_generation_order(self):
        start = datetime(2025, 12, 31, 23, 59, 59, 998000)
        instants = [start + timedelta(milliseconds=i) for i in range(5)]
        instants += [start + timedelta(seconds=1), start + timedelta(days=40), start + timedelta(days=400)]
        folios = [make_folio(t) for t in instants]
        self.assertEqual(folios, sorted(folios))
        self.assertEqual(len(set(folios)), len(folios))


class VerificationCodeTests(unittest.TestCase):
    def setUp(self):
        self.now = datetime(2025, 1, 1, tzinfo=timezone.utc)

    def test_empty_and_short_inputs_still_match_format(self):
        for tag, serial in (("", ""), ("AB", "1")):
            code = make_verification_code(tag, serial, self.now, random.Random(7))
            print(f"[code] tag={tag!r} serial={serial!r} -> {code}")
            self.assertRegex(code, CODE_PATTERN)

    def test_short_fragments_are_padded(self):
        self.assertEqual(asset_fragment(""), "XXXX")
        self.assertEqual(asset_fragment("ab"), "ABXX")
        self.assertEqual(serial_fragment(""), "0000")
        self.assertEqual(serial_fragment("1"), "0001")

    def test_fragments_strip_punctuation_and_pick_ends(self):
        self.assertEqual(asset_fragment("lap-007"), "LAP0")
        self.assertEqual(serial_fragment("SN-99 88_77"), "8877")
        self.assertEqual(asset_fragment("ñ-Ä-b"), "BXXX")

    def test_timestamp_segment_is_base36_epoch_millis(self):
        code = make_verification_code("LAP-007", "SN998877", self.now, random.Random(1))
        prefix, asset, serial, timestamp, suffix = code.split("-")
        self.assertEqual((prefix, asset, serial), ("ZIII", "LAP0", "8877"))
        self.assertEqual(int(timestamp, 36), 1735689600000)
        self.assertEqual(timestamp, timestamp.upper())
        self.assertEqual(len(suffix), 4)

    def test_same_asset_different_instant_or_rng_gives_different_codes(self):
        first = make_verification_code("LAP-007", "SN998877", self.now, random.Random(1))
        later = make_verification_code(
            "LAP-007", "SN998877", self.now + timedelta(milliseconds=1), random.Random(1)
        )
        reseeded = make_verification_code("LAP-007", "SN998877", self.now, random.Random(2))
        self.assertNotEqual(first, later)
        self.assertNotEqual(first.split("-")[3], later.split("-")[3])
        self.assertNotEqual(first, reseeded)
        self.assertNotEqual(first.split("-")[4], reseeded.split("-")[4])

    def test_seeded_rng_is_replayable(self):
        a = make_verification_code("LAP-007", "SN998877", self.now, random.Random(42))
        b = make_verification_code("LAP-007", "SN998877", self.now, random.Random(42))
        self.assertEqual(a, b)

    def test_naive_instants_are_read_as_local_time(self):
        naive = datetime(2025, 6, 1, 12, 0, 0)
        self.assertEqual(epoch_millis(naive), int(naive.timestamp()) * 1000)


class GenerateIdentifiersTests(unittest.TestCase):
    def test_defaults_use_system_clock_and_rng(self):
        ids = generate_identifiers("LAP-007", "SN998877")
        self.assertRegex(ids.folio, FOLIO_PATTERN)
        self.assertRegex(ids.verification_code, CODE_PATTERN)

    def test_folio_and_code_share_the_instant(self):
        now = datetime(2025, 1, 1, 8, 30, 15, 250000, tzinfo=timezone.utc)
        ids = generate_identifiers("LAP-007", "SN998877", now=now, rng=random.Random(3))
        self.assertEqual(ids.folio, "BAJA-20250101-083015250")
        self.assertEqual(int(ids.verification_code.split("-")[3], 36), epoch_millis(now))


if __name__ == "__main__":
    unittest.main()

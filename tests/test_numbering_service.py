# -*- coding: utf-8 -*-
"""
tests/test_numbering_service.py
=================================
NumberingService: pure format helpers, then the DB-backed allocator on
in-memory SQLite.
"""
from datetime import date

import pytest

from exceptions import (
    ConfigurationError, InvalidNumberFormatError, SequenceExhaustedError, StaleCountersError,
)
from services.numbering_service import Counters, NumberingService

WEEK1 = date(2024, 1, 1)
WEEK2 = date(2024, 1, 8)


# ── pure static helpers ───────────────────────────────────────────────────────

class TestFormat:

    def test_prefix_padded_seq_not(self):
        assert NumberingService.format_unique_number(3531, 1) == "3531-1"
        assert NumberingService.format_unique_number(35, 120) == "0035-120"

    def test_prefix_above_capacity_raises(self):
        with pytest.raises(SequenceExhaustedError):
            NumberingService.format_unique_number(10000, 1)

    def test_parse_valid(self):
        assert NumberingService.parse_unique_number("3531-12") == (3531, 12)
        assert NumberingService.parse_unique_number(" 0035-2 ") == (35, 2)

    @pytest.mark.parametrize("raw", ["", None, "35-1", "abcd-1", "3531_1", "3531-", "13531-1"])
    def test_parse_rejects_garbage(self, raw):
        assert NumberingService.parse_unique_number(raw) is None
        assert not NumberingService.is_valid_format(raw)

    def test_require_pair_raises_typed_error(self):
        with pytest.raises(InvalidNumberFormatError) as exc:
            NumberingService.require_pair("3531/1")
        assert exc.value.field == "unique_number"

    def test_counters_pair(self):
        assert Counters(3530, 0).pair == (3530, 0)


# ── counters store ────────────────────────────────────────────────────────────

class TestCounters:

    def test_seeded_from_defaults(self, db_session):
        c = NumberingService.read_counters(db_session)
        assert (c.prefix, c.seq, c.version) == (3530, 0, 0)
        assert c.last_reset_year is None

    def test_seeded_from_environment(self, db_session, monkeypatch):
        monkeypatch.setenv("NUMBERING_INITIAL_PREFIX", "4000")
        monkeypatch.setenv("NUMBERING_INITIAL_SEQ", "7")
        c = NumberingService.read_counters(db_session)
        assert c.pair == (4000, 7)

    def test_invalid_seed_is_configuration_error(self, db_session, monkeypatch):
        monkeypatch.setenv("NUMBERING_INITIAL_PREFIX", "10000")
        with pytest.raises(ConfigurationError):
            NumberingService.read_counters(db_session)

    def test_save_bumps_version(self, db_session):
        c = NumberingService.read_counters(db_session)
        saved = NumberingService.save_counters(db_session, c, 3540, 10)
        assert saved == Counters(3540, 10, None, 1)
        assert NumberingService.read_counters(db_session) == saved

    def test_stale_write_rejected(self, db_session):
        c = NumberingService.read_counters(db_session)
        NumberingService.save_counters(db_session, c, 3531, 1)
        with pytest.raises(StaleCountersError) as exc:
            NumberingService.save_counters(db_session, c, 3532, 2)
        assert exc.value.expected_version == 0
        assert NumberingService.read_counters(db_session).pair == (3531, 1)


# ── allocation ────────────────────────────────────────────────────────────────

class TestAllocateNext:

    def test_double_increment_sequence(self, db_session):
        issued = [NumberingService.allocate_next(db_session)[0] for _ in range(3)]
        assert issued == ["3531-1", "3532-2", "3533-3"]
        assert NumberingService.read_counters(db_session).pair == (3533, 3)

    def test_returns_persisted_counters(self, db_session):
        number, counters = NumberingService.allocate_next(db_session)
        assert number == "3531-1"
        assert counters == NumberingService.read_counters(db_session)
        assert counters.version == 1

    def test_live_number_above_counters_wins(self, db_session, make_participant):
        make_participant(WEEK1, unique_number="3600-70")
        number, _ = NumberingService.allocate_next(db_session)
        assert number == "3601-71"

    def test_malformed_numbers_ignored(self, db_session, make_participant):
        make_participant(WEEK1, unique_number="legacy-99")
        number, _ = NumberingService.allocate_next(db_session)
        assert number == "3531-1"

    def test_exhausted(self, db_session, set_counters):
        set_counters(9999, 40)
        with pytest.raises(SequenceExhaustedError):
            NumberingService.allocate_next(db_session)
        assert NumberingService.read_counters(db_session).pair == (9999, 40)

    def test_explicit_stale_counters_rejected(self, db_session):
        stale = NumberingService.read_counters(db_session)
        NumberingService.allocate_next(db_session)
        with pytest.raises(StaleCountersError):
            NumberingService.allocate_next(db_session, counters=stale)


class TestAllocateBatch:

    def test_fifo_order(self, db_session, make_participant):
        first = make_participant(WEEK1, person_name="First")
        second = make_participant(WEEK1, person_name="Second")
        third = make_participant(WEEK1, person_name="Third")

        issued, counters = NumberingService.allocate_batch(db_session, WEEK1)

        assert issued == ["3531-1", "3532-2", "3533-3"]
        assert [first.unique_number, second.unique_number, third.unique_number] == issued
        assert counters.pair == (3533, 3)
        assert counters.version == 1     # persisted once

    def test_skips_numbered_and_other_periods(self, db_session, make_participant):
        make_participant(WEEK1, unique_number="3531-1")
        pending = make_participant(WEEK1)
        elsewhere = make_participant(WEEK2)

        issued, _ = NumberingService.allocate_batch(db_session, WEEK1)

        assert issued == ["3532-2"]
        assert pending.unique_number == "3532-2"
        assert elsewhere.unique_number == ""

    def test_nothing_pending(self, db_session):
        before = NumberingService.read_counters(db_session)
        issued, counters = NumberingService.allocate_batch(db_session, WEEK1)
        assert issued == []
        assert counters == before

    def test_exhausted_assigns_nothing(self, db_session, make_participant, set_counters):
        set_counters(9998, 5)
        people = [make_participant(WEEK1) for _ in range(3)]
        with pytest.raises(SequenceExhaustedError):
            NumberingService.allocate_batch(db_session, WEEK1)
        assert all(p.unique_number == "" for p in people)


# ── release / clear / reset ───────────────────────────────────────────────────

class TestRelease:

    def _issue_three(self, db_session, make_participant):
        people = [make_participant(WEEK1) for _ in range(3)]
        NumberingService.allocate_batch(db_session, WEEK1)
        return people

    def test_middle_release_realigns_tail(self, db_session, make_participant):
        first, second, third = self._issue_three(db_session, make_participant)
        db_session.delete(second)
        db_session.flush()

        counters = NumberingService.release(db_session, "3532-2")

        assert first.unique_number == "3531-1"
        assert third.unique_number == "3532-2"
        assert counters.pair == (3532, 2)
        assert NumberingService.find_gaps(db_session) == []

    def test_top_release_retracts_counters(self, db_session, make_participant):
        first, second, third = self._issue_three(db_session, make_participant)
        db_session.delete(third)
        db_session.flush()

        counters = NumberingService.release(db_session, "3533-3")

        assert second.unique_number == "3532-2"
        assert counters.pair == (3532, 2)

    def test_last_number_released(self, db_session, make_participant):
        only = make_participant(WEEK1)
        NumberingService.allocate_batch(db_session, WEEK1)
        db_session.delete(only)
        db_session.flush()

        counters = NumberingService.release(db_session, "3531-1")
        assert counters.pair == (3530, 0)
        assert NumberingService.allocate_next(db_session)[0] == "3531-1"

    def test_other_runs_untouched(self, db_session, make_participant):
        first, second, third = self._issue_three(db_session, make_participant)
        other_run = make_participant(WEEK2, unique_number="3540-5")
        db_session.delete(second)
        db_session.flush()

        counters = NumberingService.release(db_session, "3532-2")

        assert third.unique_number == "3532-2"
        assert other_run.unique_number == "3540-5"
        assert counters.pair == (3540, 5)

    def test_run_stops_at_archived_number(self, db_session, make_participant, set_counters):
        from database.models.yearly_archive import YearlyArchive
        first = make_participant(WEEK1, unique_number="3531-1")
        later = make_participant(WEEK2, unique_number="3533-3")
        db_session.add(YearlyArchive(year=2023, groups=[], participants=[{"unique_number": "3532-2"}]))
        set_counters(3533, 3)
        db_session.delete(first)
        db_session.flush()

        counters = NumberingService.release(db_session, "3531-1")

        assert later.unique_number == "3533-3"
        assert counters.pair == (3533, 3)

    def test_counters_never_drop_below_archive(self, db_session, make_participant):
        from database.models.yearly_archive import YearlyArchive
        only = make_participant(WEEK1, unique_number="3531-1")
        db_session.add(YearlyArchive(year=2023, groups=[], participants=[{"unique_number": "3560-30"}]))
        db_session.delete(only)
        db_session.flush()

        counters = NumberingService.release(db_session, "3531-1")

        assert counters.pair == (3560, 30)
        assert NumberingService.allocate_next(db_session)[0] == "3561-31"

    def test_malformed_number_rejected(self, db_session):
        with pytest.raises(InvalidNumberFormatError):
            NumberingService.release(db_session, "oops")


class TestClearPeriod:

    def test_clears_and_retracts(self, db_session, make_participant):
        people = [make_participant(WEEK1) for _ in range(3)]
        NumberingService.allocate_batch(db_session, WEEK1)

        counters = NumberingService.clear_period(db_session, WEEK1)

        assert all(p.unique_number == "" for p in people)
        assert counters.pair == (3530, 0)

    def test_keeps_earlier_periods(self, db_session, make_participant):
        earlier = make_participant(WEEK1, unique_number="3531-1")
        later = [make_participant(WEEK2, unique_number=n) for n in ("3532-2", "3533-3")]
        NumberingService.save_counters(db_session, NumberingService.read_counters(db_session), 3533, 3)

        counters = NumberingService.clear_period(db_session, WEEK2)

        assert earlier.unique_number == "3531-1"
        assert all(p.unique_number == "" for p in later)
        assert counters.pair == (3531, 1)

    def test_nothing_to_clear_keeps_counters(self, db_session):
        before = NumberingService.read_counters(db_session)
        assert NumberingService.clear_period(db_session, WEEK1) == before


class TestResetYearly:

    def test_skips_one_prefix(self, db_session, set_counters):
        set_counters(3533, 3)
        counters = NumberingService.reset_yearly(db_session, 2024)
        assert counters.pair == (3534, 0)
        assert counters.last_reset_year == 2024
        assert NumberingService.allocate_next(db_session)[0] == "3535-1"

    def test_uses_global_max(self, db_session, make_participant, set_counters):
        set_counters(3533, 3)
        make_participant(WEEK1, unique_number="3600-10")
        assert NumberingService.reset_yearly(db_session, 2024).pair == (3601, 0)

    def test_year_defaults_to_today(self, db_session, clock):
        clock.today = date(2025, 1, 6)
        assert NumberingService.reset_yearly(db_session).last_reset_year == 2025

    def test_exhausted(self, db_session, set_counters):
        set_counters(9999, 1)
        with pytest.raises(SequenceExhaustedError):
            NumberingService.reset_yearly(db_session, 2024)


# ── queries ───────────────────────────────────────────────────────────────────

class TestAvailability:

    def test_live_holder(self, db_session, make_participant):
        holder = make_participant(WEEK1, unique_number="3531-1")
        assert not NumberingService.is_number_available(db_session, "3531-1")
        assert NumberingService.is_number_available(db_session, "3531-1", exclude_id=holder.id)
        assert NumberingService.is_number_available(db_session, "3532-2")

    def test_archived_holder(self, db_session):
        from database.models.yearly_archive import YearlyArchive
        db_session.add(YearlyArchive(year=2023, groups=[], participants=[{"unique_number": "3400-5"}]))
        db_session.commit()
        assert not NumberingService.is_number_available(db_session, "3400-5")

    def test_blank_is_available(self, db_session):
        assert NumberingService.is_number_available(db_session, "  ")


class TestGaps:

    def test_gap_inside_run(self, db_session, make_participant):
        for n in ("3531-1", "3533-3", "3534-4"):
            make_participant(WEEK1, unique_number=n)
        assert NumberingService.find_gaps(db_session) == ["3532-2"]

    def test_runs_are_independent(self, db_session, make_participant):
        for n in ("3531-1", "3532-2", "3540-1", "3541-2"):
            make_participant(WEEK1, unique_number=n)
        assert NumberingService.find_gaps(db_session) == []

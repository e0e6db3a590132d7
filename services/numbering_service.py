# services/numbering_service.py
"""
Unique Certificate Number Allocator
===================================

Numbers are (prefix, seq) pairs rendered as "PPPP-S": prefix zero-padded to
four digits (the physical ledger binder), seq unpadded (the page in it).
Both parts always advance together ("double increment"), so every
contiguous run keeps a constant prefix - seq offset.

  1. Counters are an explicit, versioned value:
     - every allocator call accepts the Counters it operates on (read fresh
       when omitted) and returns the Counters it persisted
     - save_counters() updates WHERE version = expected → StaleCountersError
       when somebody else wrote in between

  2. global_max() is the lexicographic maximum of the issued pairs, optionally
     including the persisted counters.

  3. release() realigns the run: every higher pair of the same run moves down
     by (1, 1) so no permanent gap is left behind.

  4. clear_period() blanks a period's numbers and lets the top of the stack
     retract; reset_yearly() skips one prefix to mark the year boundary.

No method here commits: the calling repository owns the transaction.
"""

from __future__ import annotations

import logging
import re
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Optional, Tuple

from sqlalchemy import select, update

from constants import Numbering
from database import db_utils
from database.db_utils import utc_now
from database.models.participant import Participant
from database.models.sequence_counters import SequenceCounters
from database.models.yearly_archive import YearlyArchive
from exceptions import InvalidNumberFormatError, SequenceExhaustedError, StaleCountersError

logger = logging.getLogger(__name__)

Pair = Tuple[int, int]

_NUMBER_RE = re.compile(Numbering.PATTERN)
_KEEP = object()


@dataclass(frozen=True)
class Counters:
    """Snapshot of the sequence_counters row."""
    prefix: int
    seq: int
    last_reset_year: Optional[int] = None
    version: int = 0

    @property
    def pair(self) -> Pair:
        return (self.prefix, self.seq)


class NumberingService:

    # ─── format / parse ───────────────────────────────────────────────

    @staticmethod
    def format_unique_number(prefix: int, seq: int) -> str:
        if prefix > Numbering.MAX_PREFIX:
            raise SequenceExhaustedError(prefix)
        return f"{prefix:0{Numbering.PREFIX_WIDTH}d}-{seq}"

    @staticmethod
    def parse_unique_number(number: Optional[str]) -> Optional[Pair]:
        """(prefix, seq) for a well-formed number, None for "" or garbage."""
        if not number:
            return None
        m = _NUMBER_RE.match(number.strip())
        if not m:
            return None
        return int(m.group(1)), int(m.group(2))

    @staticmethod
    def is_valid_format(number: Optional[str]) -> bool:
        return NumberingService.parse_unique_number(number) is not None

    @staticmethod
    def require_pair(number: str) -> Pair:
        pair = NumberingService.parse_unique_number(number)
        if pair is None:
            raise InvalidNumberFormatError(number)
        return pair

    # ─── counters store ───────────────────────────────────────────────

    @staticmethod
    def read_counters(db_session) -> Counters:
        """
        Current counters. A fresh database gets its row seeded from the
        configuration (NUMBERING_INITIAL_PREFIX / NUMBERING_INITIAL_SEQ).
        """
        row = db_session.execute(
            select(
                SequenceCounters.last_prefix,
                SequenceCounters.last_seq,
                SequenceCounters.last_reset_year,
                SequenceCounters.version,
            ).where(SequenceCounters.id == Numbering.COUNTERS_ID)
        ).one_or_none()

        if row is None:
            from core.config import get_initial_counters
            prefix, seq = get_initial_counters()
            db_session.add(SequenceCounters(
                id=Numbering.COUNTERS_ID, last_prefix=prefix, last_seq=seq, version=0,
            ))
            db_session.flush()
            logger.info(f"Sequence counters seeded at {prefix}/{seq}")
            return Counters(prefix, seq, None, 0)

        return Counters(row.last_prefix, row.last_seq, row.last_reset_year, row.version)

    @staticmethod
    def save_counters(db_session, expected: Counters, prefix: int, seq: int,
                      *, last_reset_year=_KEEP) -> Counters:
        """Optimistic write: succeeds only if the row still has expected.version."""
        year = expected.last_reset_year if last_reset_year is _KEEP else last_reset_year
        result = db_session.execute(
            update(SequenceCounters)
            .where(
                SequenceCounters.id == Numbering.COUNTERS_ID,
                SequenceCounters.version == expected.version,
            )
            .values(
                last_prefix=prefix,
                last_seq=seq,
                last_reset_year=year,
                version=expected.version + 1,
                updated_at=utc_now(),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise StaleCountersError(expected.version)
        return Counters(prefix, seq, year, expected.version + 1)

    @staticmethod
    def _resolve(db_session, counters: Optional[Counters]) -> Counters:
        return counters if counters is not None else NumberingService.read_counters(db_session)

    # ─── scans ────────────────────────────────────────────────────────

    @staticmethod
    def _numbered(db_session) -> List[Tuple[Pair, Participant]]:
        """Live participants holding a well-formed number, with their pair."""
        db_session.flush()
        rows = db_session.execute(
            select(Participant).where(Participant.unique_number != "")
        ).scalars().all()
        out = []
        for p in rows:
            pair = NumberingService.parse_unique_number(p.unique_number)
            if pair is None:
                logger.warning(f"Ignoring malformed unique number {p.unique_number!r} (participant {p.id})")
                continue
            out.append((pair, p))
        return out

    @staticmethod
    def _archived_pairs(db_session) -> List[Pair]:
        """Pairs held by archived participants; they stay reserved."""
        pairs = []
        for archive in db_session.execute(select(YearlyArchive)).scalars():
            for row in archive.participants or []:
                pair = NumberingService.parse_unique_number(row.get("unique_number"))
                if pair is not None:
                    pairs.append(pair)
        return pairs

    @staticmethod
    def global_max(db_session, ignore_counters: bool = False,
                   counters: Optional[Counters] = None) -> Optional[Pair]:
        """
        Highest issued pair, live or archived, ordered by prefix then seq.
        The persisted counters take part unless ignore_counters. None when
        nothing exists.
        """
        best: Optional[Pair] = None
        live = [pair for pair, _p in NumberingService._numbered(db_session)]
        for pair in live + NumberingService._archived_pairs(db_session):
            if best is None or pair > best:
                best = pair
        if not ignore_counters:
            current = NumberingService._resolve(db_session, counters).pair
            if best is None or current > best:
                best = current
        return best

    # ─── allocation ───────────────────────────────────────────────────

    @staticmethod
    def allocate_next(db_session, counters: Optional[Counters] = None) -> Tuple[str, Counters]:
        """Single issue: global_max() + (1, 1), persisted as the new counters."""
        counters = NumberingService._resolve(db_session, counters)
        prefix, seq = NumberingService.global_max(db_session, counters=counters)
        prefix, seq = prefix + 1, seq + 1
        number = NumberingService.format_unique_number(prefix, seq)
        saved = NumberingService.save_counters(db_session, counters, prefix, seq)
        logger.info(f"Issued unique number {number}")
        return number, saved

    @staticmethod
    def allocate_batch(db_session, period_start: date,
                       counters: Optional[Counters] = None) -> Tuple[List[str], Counters]:
        """
        Numbers for every participant of the period still without one, in
        FIFO order (created_at, then id). Counters are persisted once.
        """
        counters = NumberingService._resolve(db_session, counters)
        db_session.flush()
        pending = db_session.execute(
            select(Participant)
            .where(Participant.period_start == period_start, Participant.unique_number == "")
            .order_by(Participant.created_at, Participant.id)
        ).scalars().all()
        if not pending:
            return [], counters

        prefix, seq = NumberingService.global_max(db_session, counters=counters)
        if prefix + len(pending) > Numbering.MAX_PREFIX:
            raise SequenceExhaustedError(prefix + len(pending))

        now = utc_now()
        issued = []
        for p in pending:
            prefix, seq = prefix + 1, seq + 1
            p.unique_number = NumberingService.format_unique_number(prefix, seq)
            p.updated_at = now
            issued.append(p.unique_number)

        saved = NumberingService.save_counters(db_session, counters, prefix, seq)
        db_session.flush()
        logger.info(f"Issued {len(issued)} unique number(s) for period {period_start}: "
                    f"{issued[0]} .. {issued[-1]}")
        return issued, saved

    # ─── release / clear / reset ──────────────────────────────────────

    @staticmethod
    def release(db_session, number: str, counters: Optional[Counters] = None) -> Counters:
        """
        Close the gap left by a deleted number. Every other pair of the same
        run with a higher prefix moves down by (1, 1), up to the first
        archived pair of that run. The counters become the highest remaining
        pair, never lower than the pair just below the released one.
        """
        counters = NumberingService._resolve(db_session, counters)
        released = NumberingService.require_pair(number)
        offset = released[0] - released[1]
        barrier = min(
            (prefix for prefix, seq in NumberingService._archived_pairs(db_session)
             if prefix > released[0] and prefix - seq == offset),
            default=Numbering.MAX_PREFIX + 1,
        )

        now = utc_now()
        shifted = 0
        for (prefix, seq), p in NumberingService._numbered(db_session):
            if p.unique_number == number:
                continue
            if released[0] < prefix < barrier and prefix - seq == offset:
                p.unique_number = NumberingService.format_unique_number(prefix - 1, seq - 1)
                p.updated_at = now
                shifted += 1
        db_session.flush()

        floor = (released[0] - 1, released[1] - 1)
        top = NumberingService.global_max(db_session, ignore_counters=True)
        new_prefix, new_seq = max(top, floor) if top is not None else floor

        saved = NumberingService.save_counters(db_session, counters, new_prefix, new_seq)
        logger.info(f"Released {number}: {shifted} number(s) realigned, "
                    f"counters now {new_prefix}/{new_seq}")
        return saved

    @staticmethod
    def clear_period(db_session, period_start: date,
                     counters: Optional[Counters] = None) -> Counters:
        """
        Blank every number issued in the period, then retract the counters to
        the highest remaining pair. Untouched when the period had no numbers.
        """
        counters = NumberingService._resolve(db_session, counters)
        db_session.flush()
        holders = db_session.execute(
            select(Participant)
            .where(Participant.period_start == period_start, Participant.unique_number != "")
        ).scalars().all()
        if not holders:
            return counters

        pairs = [NumberingService.parse_unique_number(p.unique_number) for p in holders]
        pairs = [pair for pair in pairs if pair is not None]

        now = utc_now()
        for p in holders:
            p.unique_number = ""
            p.updated_at = now
        db_session.flush()

        top = NumberingService.global_max(db_session, ignore_counters=True)
        if pairs:
            lowest = min(pairs)
            floor = (lowest[0] - 1, lowest[1] - 1)
            new_pair = max(top, floor) if top is not None else floor
        else:
            new_pair = top if top is not None else counters.pair

        saved = NumberingService.save_counters(db_session, counters, *new_pair)
        logger.info(f"Cleared {len(holders)} number(s) of period {period_start}, "
                    f"counters now {new_pair[0]}/{new_pair[1]}")
        return saved

    @staticmethod
    def reset_yearly(db_session, year: Optional[int] = None,
                     counters: Optional[Counters] = None) -> Counters:
        """prefix + 1, seq = 0: the next issue is (prefix + 2, 1)."""
        counters = NumberingService._resolve(db_session, counters)
        prefix, _seq = NumberingService.global_max(db_session, counters=counters)
        if prefix + 1 > Numbering.MAX_PREFIX:
            raise SequenceExhaustedError(prefix + 1)
        year = year or db_utils.today().year
        saved = NumberingService.save_counters(
            db_session, counters, prefix + 1, 0, last_reset_year=year,
        )
        logger.info(f"Yearly reset for {year}: counters now {prefix + 1}/0")
        return saved

    # ─── queries ──────────────────────────────────────────────────────

    @staticmethod
    def is_number_available(db_session, number: str, exclude_id: Optional[str] = None) -> bool:
        """True when no live or archived participant holds the number."""
        number = (number or "").strip()
        if not number:
            return True
        db_session.flush()
        q = select(Participant.id).where(Participant.unique_number == number)
        if exclude_id:
            q = q.where(Participant.id != exclude_id)
        if db_session.execute(q.limit(1)).first() is not None:
            return False

        for archive in db_session.execute(select(YearlyArchive)).scalars():
            for row in archive.participants or []:
                if row.get("unique_number") == number:
                    return False
        return True

    @staticmethod
    def find_gaps(db_session) -> List[str]:
        """Numbers missing inside each live run (pairs sharing prefix - seq)."""
        runs: Dict[int, List[int]] = defaultdict(list)
        for (prefix, seq), _p in NumberingService._numbered(db_session):
            runs[prefix - seq].append(prefix)

        gaps = []
        for offset, prefixes in runs.items():
            present = set(prefixes)
            for prefix in range(min(present) + 1, max(present)):
                if prefix not in present:
                    gaps.append(NumberingService.format_unique_number(prefix, prefix - offset))
        return sorted(gaps, key=NumberingService.parse_unique_number)


"""
Candidate generation and ranking.

Every unordered pair of records in the same group is compared exactly once,
pairs the operator already dismissed are skipped, and the survivors are
classified and scored. Comparisons share no state, so large directories can
be split across a process pool.
"""

from collections import defaultdict
from concurrent.futures import ProcessPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeout
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from config.logging import get_logger
from config.settings import settings
from dedup.cancel import CancelToken, check_token
from dedup.errors import OperationCancelled
from dedup.kinds import KindStrategy
from dedup.matching.classifiers import MatchThresholds, MatchType
from dedup.records import Record

logger = get_logger("dedup.candidates")

# Pair comparisons handed to a worker process at a time
CHUNK_COMPARISONS = 20_000


def pair_key(id_a, id_b) -> str:
    """
    Order-independent identity of a pair: both ids sorted and joined.

    pair_key(a, b) == pair_key(b, a)
    """
    return "-".join(sorted((str(id_a), str(id_b))))


@dataclass(frozen=True)
class CandidatePair:
    """A pair of records that are likely duplicates."""
    record_a: Record
    record_b: Record
    match_type: MatchType
    score: int

    @property
    def pair_key(self) -> str:
        return pair_key(self.record_a.id, self.record_b.id)

    @property
    def ids(self) -> tuple[str, str]:
        return str(self.record_a.id), str(self.record_b.id)

    def involves(self, record_id) -> bool:
        return str(record_id) in self.ids

    def __repr__(self) -> str:
        return (
            f"<CandidatePair({self.record_a.id} <-> {self.record_b.id}, "
            f"{self.match_type.value}, score={self.score})>"
        )


def rank(candidates: Iterable[CandidatePair]) -> list[CandidatePair]:
    """Highest score first. Equal scores keep their input order."""
    return sorted(candidates, key=lambda c: c.score, reverse=True)


@dataclass(frozen=True)
class _Chunk:
    """Rows of one group to compare: records[i] against records[i+1:stop]."""
    records: tuple
    rows: tuple


def _plan_chunks(
    groups: Sequence[tuple],
    max_comparisons: Optional[int],
    chunk_comparisons: int = CHUNK_COMPARISONS,
) -> tuple[list[_Chunk], int, bool]:
    """
    Split the pair space into chunks without materializing pairs.

    Returns (chunks, planned comparisons, truncated). When the bound is hit,
    the last row is cut short and the rest of the pair space is dropped.
    """
    chunks = []
    planned = 0
    truncated = False

    for records in groups:
        rows = []
        rows_cost = 0
        n = len(records)
        for i in range(n - 1):
            stop = n
            cost = n - 1 - i
            if max_comparisons is not None and planned + cost > max_comparisons:
                cost = max_comparisons - planned
                stop = i + 1 + cost
                truncated = True
            if cost > 0:
                rows.append((i, stop))
                rows_cost += cost
                planned += cost
            if rows_cost >= chunk_comparisons:
                chunks.append(_Chunk(records, tuple(rows)))
                rows, rows_cost = [], 0
            if truncated:
                break
        if rows:
            chunks.append(_Chunk(records, tuple(rows)))
        if truncated:
            break

    return chunks, planned, truncated


def _compare_chunk(
    strategy: KindStrategy,
    thresholds: MatchThresholds,
    dismissed: frozenset,
    chunk: _Chunk,
) -> list[CandidatePair]:
    """Classify and score every pair in a chunk. Runs in worker processes."""
    found = []
    records = chunk.records
    for i, stop in chunk.rows:
        a = records[i]
        for j in range(i + 1, stop):
            b = records[j]
            if str(a.id) == str(b.id):
                continue
            if pair_key(a.id, b.id) in dismissed:
                continue
            match_type = strategy.classify(a, b, thresholds)
            if match_type is None:
                continue
            found.append(CandidatePair(
                record_a=a,
                record_b=b,
                match_type=match_type,
                score=strategy.score(a, b),
            ))
    return found


class CandidateGenerator:
    """
    Finds likely duplicate pairs for one record kind.

    Usage:
        generator = CandidateGenerator(ORGANIZATIONS, ledger=ledger)
        candidates = rank(generator.generate(store.list_all(RecordKind.ORGANIZATION)))
    """

    def __init__(
        self,
        strategy: KindStrategy,
        ledger=None,
        thresholds: Optional[MatchThresholds] = None,
        workers: Optional[int] = None,
        max_comparisons: Optional[int] = None,
        block_by_state: Optional[bool] = None,
    ):
        self.strategy = strategy
        self.ledger = ledger
        self.thresholds = thresholds or MatchThresholds.from_settings()
        self.workers = workers if workers is not None else settings.CANDIDATE_WORKERS
        self.max_comparisons = (
            max_comparisons if max_comparisons is not None else settings.MAX_PAIR_COMPARISONS
        )
        self.block_by_state = (
            block_by_state if block_by_state is not None
            else settings.BLOCK_ORGANIZATIONS_BY_STATE
        )
        self.comparisons = 0
        self.truncated = False

    def group(self, records: Sequence[Record]) -> list[tuple]:
        """Bucket records by the strategy's group key, keeping input order."""
        buckets = defaultdict(list)
        for record in records:
            buckets[self.strategy.group_key(record, self.block_by_state)].append(record)
        return [tuple(bucket) for bucket in buckets.values() if len(bucket) > 1]

    def generate(
        self,
        records: Sequence[Record],
        token: Optional[CancelToken] = None,
    ) -> list[CandidatePair]:
        """
        Compare every unordered pair once and return the likely duplicates,
        in enumeration order (use rank() for presentation order).
        """
        dismissed = frozenset(self.ledger.keys()) if self.ledger is not None else frozenset()
        groups = self.group(records)
        chunks, planned, truncated = _plan_chunks(groups, self.max_comparisons)

        self.comparisons = planned
        self.truncated = truncated
        if truncated:
            logger.warning(
                f"Pair comparison bound reached ({self.max_comparisons}); "
                f"later {self.strategy.kind.value} pairs were not compared"
            )

        logger.info(
            f"Comparing {len(records)} {self.strategy.kind.value} records "
            f"in {len(groups)} group(s): {planned} pairs, {len(chunks)} chunk(s), "
            f"{len(dismissed)} dismissed"
        )

        if self.workers > 1 and len(chunks) > 1:
            results = self._run_parallel(chunks, dismissed, token)
        else:
            results = self._run_sequential(chunks, dismissed, token)

        candidates = []
        checked = set()
        for chunk_result in results:
            for candidate in chunk_result:
                # The same id listed twice would otherwise surface a pair twice
                if candidate.pair_key in checked:
                    continue
                checked.add(candidate.pair_key)
                candidates.append(candidate)

        exact = sum(1 for c in candidates if c.match_type == MatchType.EXACT)
        logger.info(
            f"Found {len(candidates)} candidate {self.strategy.kind.value} pairs "
            f"({exact} exact, {len(candidates) - exact} fuzzy)"
        )
        return candidates

    def _run_sequential(self, chunks, dismissed, token) -> list[list[CandidatePair]]:
        results = []
        for chunk in chunks:
            check_token(token, "candidate generation")
            results.append(_compare_chunk(self.strategy, self.thresholds, dismissed, chunk))
        return results

    def _run_parallel(self, chunks, dismissed, token) -> list[list[CandidatePair]]:
        results = []
        executor = ProcessPoolExecutor(max_workers=self.workers)
        try:
            futures = [
                executor.submit(_compare_chunk, self.strategy, self.thresholds, dismissed, chunk)
                for chunk in chunks
            ]
            # Collected in submission order so output matches the sequential run
            for future in futures:
                check_token(token, "candidate generation")
                try:
                    results.append(future.result(timeout=token.remaining() if token else None))
                except FuturesTimeout:
                    raise OperationCancelled("candidate generation: deadline exceeded") from None
        except BaseException:
            executor.shutdown(wait=False, cancel_futures=True)
            raise
        executor.shutdown(wait=True)
        return results

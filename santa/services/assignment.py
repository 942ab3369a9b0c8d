"""Randomized Secret Santa assignment engine.

The search is a bounded retry loop: shuffle the receivers, pair them with the
givers in their original order, and accept the first candidate that violates
no exclusion. It never falls back to an exact matching algorithm, so a heavily
constrained group can report failure even though a valid assignment exists.
"""

from __future__ import annotations

import enum
import random
from collections import Counter
from dataclasses import dataclass
from typing import Dict, Hashable, Iterable, List, NamedTuple, Optional, Sequence, Set, Tuple, TypeVar, Union

from loguru import logger

DEFAULT_MAX_RETRIES = 2000

INSUFFICIENT_PARTICIPANTS = "insufficient participants"
SEARCH_EXHAUSTED = "unable to find valid assignment under current constraints"

T = TypeVar("T")

_default_rng = random.Random()


class ExclusionRule(NamedTuple):
    giver: Hashable
    receiver: Hashable
    mutual: bool = False


class Pairing(NamedTuple):
    giver: Hashable
    receiver: Hashable


class SearchState(str, enum.Enum):
    SEARCHING = "searching"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class Success:
    mapping: Tuple[Pairing, ...]
    attempts: int

    ok = True

    def as_dict(self) -> Dict[Hashable, Hashable]:
        return {pair.giver: pair.receiver for pair in self.mapping}


@dataclass(frozen=True)
class Failure:
    reason: str
    attempts: int = 0

    ok = False


MappingResult = Union[Success, Failure]
ExclusionSet = Dict[Hashable, Set[Hashable]]


def shuffle(items: Sequence[T], rng: Optional[random.Random] = None) -> List[T]:
    """Return a uniformly shuffled copy of ``items`` (Fisher-Yates).

    ``rng`` only needs a ``randint(a, b)`` method inclusive on both ends.
    """
    rng = rng or _default_rng
    result = list(items)
    for i in range(len(result) - 1, 0, -1):
        j = rng.randint(0, i)
        result[i], result[j] = result[j], result[i]
    return result


def build_exclusion_set(
    participants: Iterable[Hashable],
    exclusion_rules: Optional[Iterable[Tuple[Hashable, Hashable, bool]]] = None,
) -> ExclusionSet:
    excluded: ExclusionSet = {participant: {participant} for participant in participants}
    for giver, receiver, mutual in exclusion_rules or ():
        # Unknown ids still get an entry; it is never consulted as a giver.
        excluded.setdefault(giver, {giver}).add(receiver)
        if mutual:
            excluded.setdefault(receiver, {receiver}).add(giver)
    return excluded


def _violates(givers: Sequence[Hashable], receivers: Sequence[Hashable], excluded: ExclusionSet) -> bool:
    for giver, receiver in zip(givers, receivers):
        if receiver in excluded.get(giver, ()):
            return True
    return False


class MappingSearch:
    """One bounded search run.

    Starts in ``SEARCHING``; every :meth:`step` spends one attempt and moves to
    ``SUCCEEDED`` on the first valid candidate or to ``EXHAUSTED`` once the
    budget is spent. Terminal states do not change.
    """

    def __init__(
        self,
        participants: Sequence[Hashable],
        excluded: ExclusionSet,
        max_retries: int = DEFAULT_MAX_RETRIES,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.participants = list(participants)
        self.excluded = excluded
        self.max_retries = max_retries
        self.rng = rng or _default_rng
        self.state = SearchState.SEARCHING
        self.attempts = 0
        self.mapping: Optional[Tuple[Pairing, ...]] = None

    def step(self) -> SearchState:
        if self.state is not SearchState.SEARCHING:
            return self.state
        if self.attempts >= self.max_retries:
            self.state = SearchState.EXHAUSTED
            return self.state

        self.attempts += 1
        receivers = shuffle(self.participants, self.rng)
        if not _violates(self.participants, receivers, self.excluded):
            self.mapping = tuple(Pairing(giver, receiver) for giver, receiver in zip(self.participants, receivers))
            self.state = SearchState.SUCCEEDED
        elif self.attempts >= self.max_retries:
            self.state = SearchState.EXHAUSTED
        return self.state

    def run(self) -> MappingResult:
        while self.step() is SearchState.SEARCHING:
            pass
        if self.state is SearchState.SUCCEEDED:
            return Success(mapping=self.mapping, attempts=self.attempts)
        return Failure(reason=SEARCH_EXHAUSTED, attempts=self.attempts)


def compute_mapping(
    participants: Sequence[Hashable],
    exclusion_rules: Optional[Iterable[Tuple[Hashable, Hashable, bool]]] = None,
    max_retries: int = DEFAULT_MAX_RETRIES,
    rng: Optional[random.Random] = None,
) -> MappingResult:
    participants = list(participants)
    if len(participants) < 2:
        return Failure(reason=INSUFFICIENT_PARTICIPANTS)
    if isinstance(max_retries, bool) or not isinstance(max_retries, int) or max_retries < 1:
        raise ValueError(f"max_retries must be a positive integer, got {max_retries!r}")

    excluded = build_exclusion_set(participants, exclusion_rules)
    result = MappingSearch(participants, excluded, max_retries=max_retries, rng=rng).run()

    logger.bind(participants=len(participants), attempts=result.attempts).debug(
        "Mapping search finished: {outcome}", outcome="found" if result.ok else "exhausted"
    )
    return result


def validate_mapping(
    participants: Sequence[Hashable],
    mapping: Iterable[Tuple[Hashable, Hashable]],
    exclusion_rules: Optional[Iterable[Tuple[Hashable, Hashable, bool]]] = None,
) -> bool:
    pairs = list(mapping)
    givers = [giver for giver, _ in pairs]
    receivers = [receiver for _, receiver in pairs]
    expected = Counter(participants)
    if Counter(givers) != expected or Counter(receivers) != expected:
        return False
    excluded = build_exclusion_set(participants, exclusion_rules)
    return not _violates(givers, receivers, excluded)

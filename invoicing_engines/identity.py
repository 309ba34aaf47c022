"""
Module: invoicing_engines.identity
Responsibility:
    Tie a payroll register name to the allocation-sheet record for the same
    person.  The two documents are authored independently, so names drift:
    case, punctuation, "Last, First" versus "First Last", generational
    suffixes.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Resolution policy (in order):
    1. EXACT            canonical full names are equal.
    2. LAST_NAME        exactly one allocation record shares the last name.
    3. FIRST_INITIAL    several share it; exactly one also shares the first
                        initial.
    4. MOST_ALLOCATIONS several remain; the one with the most non-zero
                        allocation entries wins (restricted to first-initial
                        matches when there are any).  Equal counts fall back
                        to allocation-sheet order.
    5. UNMATCHED        nobody shares the last name.  Not an error.

Invariants enforced:
    - ``resolve`` never raises.
    - Resolution is deterministic for a given allocation-sheet order.

Audit relevance:
    Every resolution returns an ``EmployeeMatch`` naming the method used, so
    heuristic (non-EXACT) pairings can be reviewed before invoices go out.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass

from invoicing_engines.percent import normalize_percent
from invoicing_engines.types import AllocationEmployee, EmployeeMatch, MatchMethod, ZERO
from invoicing_kernel.logging_config import get_logger

logger = get_logger("engines.identity")

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_WS = re.compile(r"\s+")
_HAS_LETTER = re.compile(r"[a-z]")

NAME_SUFFIXES = frozenset({"jr", "sr", "ii", "iii", "iv", "v"})


def normalize_name(name: str) -> str:
    """Lowercase, punctuation to spaces, single-spaced, trimmed."""
    lowered = (name or "").lower()
    return _WS.sub(" ", _NON_ALNUM.sub(" ", lowered)).strip()


@dataclass(frozen=True)
class NameKey:
    """Comparable parts of a person's name."""

    full: str
    last: str
    first_initial: str


def name_key(name: str) -> NameKey:
    """Canonical name parts.

    "Winig, Drew" and "Drew Winig" both become ``full="drew winig"``,
    ``last="winig"``, ``first_initial="d"``.
    """
    raw = name or ""
    if "," in raw:
        last_part, _, first_part = raw.partition(",")
        tokens = normalize_name(first_part).split() + normalize_name(last_part).split()
    else:
        tokens = normalize_name(raw).split()
    tokens = [t for t in tokens if t not in NAME_SUFFIXES] or tokens

    lettered = [t for t in tokens if _HAS_LETTER.search(t)]
    last = lettered[-1] if lettered else (tokens[-1] if tokens else "")
    first = lettered[0] if lettered else ""
    return NameKey(
        full=" ".join(tokens),
        last=last,
        first_initial=first[:1] if first != last or len(lettered) > 1 else "",
    )


def allocation_entry_count(employee: AllocationEmployee) -> int:
    """Number of allocation entries that carry a non-zero percent."""
    return sum(1 for raw in employee.allocations.values() if normalize_percent(raw) > ZERO)


class EmployeeResolver:
    """
    Index of allocation-sheet employees for name resolution.

    Contract:
        Built once per invocation from the allocation employees; read-only
        afterwards.
    Guarantees:
        - ``resolve`` returns an ``EmployeeMatch`` for every input, never
          raises.
        - When two allocation rows normalize to the same full name, the
          later row wins the EXACT lookup (last write, as the sheet reads
          top to bottom).
    """

    def __init__(self, employees: Sequence[AllocationEmployee]):
        self._employees = tuple(employees)
        self._by_full: dict[str, AllocationEmployee] = {}
        self._by_last: dict[str, list[tuple[NameKey, AllocationEmployee]]] = {}
        for emp in self._employees:
            key = name_key(emp.name)
            if not key.full:
                continue
            self._by_full[key.full] = emp
            self._by_last.setdefault(key.last, []).append((key, emp))

    def lookup(self, payroll_name: str) -> AllocationEmployee | None:
        """The allocation record for ``payroll_name``, or None."""
        return self._resolve(payroll_name)[1]

    def resolve(self, payroll_name: str) -> EmployeeMatch:
        """Resolve ``payroll_name`` and describe how the match was made."""
        match, _ = self._resolve(payroll_name)
        return match

    def resolve_record(self, payroll_name: str) -> tuple[EmployeeMatch, AllocationEmployee | None]:
        """Both the audit record and the matched allocation employee."""
        return self._resolve(payroll_name)

    def _resolve(self, payroll_name: str) -> tuple[EmployeeMatch, AllocationEmployee | None]:
        key = name_key(payroll_name)

        direct = self._by_full.get(key.full) if key.full else None
        if direct is not None:
            return self._matched(payroll_name, direct, MatchMethod.EXACT, 1)

        candidates = self._by_last.get(key.last, []) if key.last else []
        if not candidates:
            logger.info("employee_unmatched", extra={"payroll_name": payroll_name})
            return EmployeeMatch(payroll_name, None, MatchMethod.UNMATCHED, 0), None

        if len(candidates) == 1:
            return self._matched(payroll_name, candidates[0][1], MatchMethod.LAST_NAME, 1)

        same_initial = [
            emp for k, emp in candidates
            if key.first_initial and k.first_initial == key.first_initial
        ]
        if len(same_initial) == 1:
            return self._matched(
                payroll_name, same_initial[0], MatchMethod.FIRST_INITIAL, len(candidates)
            )

        pool = same_initial or [emp for _, emp in candidates]
        # max() keeps the first of equal counts, i.e. allocation-sheet order
        chosen = max(pool, key=allocation_entry_count)
        logger.warning("employee_match_ambiguous", extra={
            "payroll_name": payroll_name,
            "chosen": chosen.name,
            "candidates": [emp.name for emp in pool],
        })
        return self._matched(
            payroll_name, chosen, MatchMethod.MOST_ALLOCATIONS, len(candidates)
        )

    @staticmethod
    def _matched(
        payroll_name: str,
        employee: AllocationEmployee,
        method: MatchMethod,
        candidate_count: int,
    ) -> tuple[EmployeeMatch, AllocationEmployee]:
        logger.debug("employee_matched", extra={
            "payroll_name": payroll_name,
            "allocation_name": employee.name,
            "method": method.value,
        })
        return EmployeeMatch(payroll_name, employee.name, method, candidate_count), employee

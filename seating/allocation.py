"""
Table allocation engine.

Everything in this module is pure and works on in-memory `Table` and
`TableJoin` instances: the service layer loads the free tables and the
restaurant's configured joins, builds an `AllocationContext`, and hands it
to `select_allocation`.

Allocation is a priority cascade. `ALLOCATION_STRATEGIES` is walked in
order and the first strategy that returns a result wins; no attempt is made
to find a better option further down the list.

    1. exact_fit               standalone table, capacity == party size
    2. standalone_fit          smallest standalone table that fits
    3. preconfigured_join      smallest configured pair that fits
    4. strict_combination      connected group over configured-join edges
    5. permissive_combination  any group of joinable tables

A table is *standalone* when it is not a member of any configured join.
"""

import logging
from collections import deque
from dataclasses import asdict, dataclass, field
from functools import cached_property
from itertools import combinations

logger = logging.getLogger(__name__)

MAX_GROUP_SIZE = 4
# Quads (and anything larger) are a rare fallback: first fit wins there.
WASTE_MINIMISED_GROUP_SIZES = (2, 3)


# =============================================================================
# === RESULT & CONTEXT ========================================================
# =============================================================================

@dataclass
class AllocationResult:
    success: bool = False
    table_ids: list = field(default_factory=list)
    table_numbers: list = field(default_factory=list)
    total_capacity: int = 0
    wasted_seats: int = 0
    strategy: str = ""
    description: str = ""
    error_message: str = ""

    @classmethod
    def failure(cls, message):
        return cls(success=False, error_message=message)

    @classmethod
    def for_tables(cls, tables, party_size, strategy, describe):
        total = sum(t.capacity for t in tables)
        result = cls(
            success=True,
            table_ids=[t.pk for t in tables],
            table_numbers=[t.table_number for t in tables],
            total_capacity=total,
            wasted_seats=total - party_size,
            strategy=strategy,
        )
        result.description = describe(result)
        return result

    def as_dict(self):
        return asdict(self)


@dataclass
class AllocationContext:
    """Free tables for one slot, plus the restaurant's configured joins."""

    tables: list
    joins: list
    party_size: int
    max_group_size: int = MAX_GROUP_SIZE

    @cached_property
    def tables_by_id(self):
        return {t.pk: t for t in self.tables}

    @cached_property
    def joined_table_ids(self):
        ids = set()
        for join in self.joins:
            ids.update(join.table_ids)
        return ids

    @cached_property
    def standalone_tables(self):
        # A joined table stays out of rules 1-2 even when its partner is booked,
        # so it alone can never seat a party.
        return [t for t in self.tables if t.pk not in self.joined_table_ids]

    @cached_property
    def joinable_tables(self):
        return [t for t in self.tables if t.is_joinable]

    @property
    def largest_capacity(self):
        return max((t.capacity for t in self.tables), default=0)


def _numbers(result, sep=", "):
    return sep.join(str(n) for n in result.table_numbers)


# =============================================================================
# === JOIN GRAPH ==============================================================
# =============================================================================

def build_strict_adjacency(tables, joins):
    """Undirected adjacency from configured joins whose members are both in `tables`."""
    adjacency = {t.pk: set() for t in tables}
    for join in joins:
        a, b = join.table_ids
        if a in adjacency and b in adjacency:
            adjacency[a].add(b)
            adjacency[b].add(a)
    return adjacency


def build_permissive_adjacency(tables):
    """Every table adjacent to every other table."""
    ids = [t.pk for t in tables]
    return {pk: {other for other in ids if other != pk} for pk in ids}


def is_connected_group(table_ids, adjacency):
    """BFS from the first id over edges that stay inside the group."""
    table_ids = list(table_ids)
    if len(table_ids) <= 1:
        return True

    members = set(table_ids)
    visited = {table_ids[0]}
    queue = deque([table_ids[0]])
    while queue:
        current = queue.popleft()
        for neighbour in adjacency.get(current, ()):
            if neighbour in members and neighbour not in visited:
                visited.add(neighbour)
                queue.append(neighbour)
    return visited == members


# =============================================================================
# === COMBINATION SEARCH ======================================================
# =============================================================================

def find_best_combination(tables, adjacency, party_size, max_group_size=MAX_GROUP_SIZE):
    """
    Smallest connected group of `tables` whose capacity covers `party_size`.

    Group sizes are tried from 2 up to `max_group_size`; the first size that
    yields any valid group ends the search. Within sizes 2 and 3 the group
    with the fewest wasted seats wins (first one on ties, and a zero-waste
    group returns immediately). Larger sizes return the first valid group.
    Returns a list of tables, or None.
    """
    for group_size in range(2, max_group_size + 1):
        if len(tables) < group_size:
            break

        best, best_waste = None, None
        for combo in combinations(tables, group_size):
            capacity = sum(t.capacity for t in combo)
            if capacity < party_size:
                continue
            if not is_connected_group([t.pk for t in combo], adjacency):
                continue

            if group_size not in WASTE_MINIMISED_GROUP_SIZES:
                logger.info("Found combination of %d tables", group_size)
                return list(combo)

            waste = capacity - party_size
            if best is None or waste < best_waste:
                best, best_waste = list(combo), waste
                if waste == 0:
                    logger.info("Found exact fit with %d tables", group_size)
                    return best

        if best is not None:
            logger.info("Best %d-table group found with %d wasted seats", group_size, best_waste)
            return best

    return None


# =============================================================================
# === STRATEGIES ==============================================================
# =============================================================================

def exact_fit(ctx):
    for table in ctx.standalone_tables:
        if table.capacity == ctx.party_size:
            return AllocationResult.for_tables(
                [table], ctx.party_size, "exact_fit",
                lambda r: f"Exact fit: Table {_numbers(r)} (capacity {r.total_capacity})",
            )
    return None


def standalone_fit(ctx):
    fits = [t for t in ctx.standalone_tables if t.capacity >= ctx.party_size]
    if not fits:
        return None
    table = min(fits, key=lambda t: (t.capacity, t.pk))
    return AllocationResult.for_tables(
        [table], ctx.party_size, "standalone_fit",
        lambda r: (
            f"Single table: Table {_numbers(r)} "
            f"(capacity {r.total_capacity}, {r.wasted_seats} seats unused)"
        ),
    )


def preconfigured_join(ctx):
    by_id = ctx.tables_by_id
    candidates = []
    for join in ctx.joins:
        a, b = join.table_ids
        if a in by_id and b in by_id:
            capacity = by_id[a].capacity + by_id[b].capacity
            if capacity >= ctx.party_size:
                candidates.append((capacity, join.pk, join))
    if not candidates:
        return None

    _, _, join = min(candidates, key=lambda c: (c[0], c[1]))
    return AllocationResult.for_tables(
        [by_id[pk] for pk in join.table_ids],
        ctx.party_size, "preconfigured_join",
        lambda r: (
            f"Preconfigured join: Tables {_numbers(r, ' + ')} "
            f"(total capacity {r.total_capacity}, {r.wasted_seats} seats unused)"
        ),
    )


def _combination(ctx, adjacency, strategy, label):
    tables = ctx.joinable_tables
    if len(tables) < 2:
        return None
    combo = find_best_combination(tables, adjacency, ctx.party_size, ctx.max_group_size)
    if not combo:
        return None
    return AllocationResult.for_tables(
        combo, ctx.party_size, strategy,
        lambda r: (
            f"Combined {len(r.table_ids)} tables{label}: {_numbers(r)} "
            f"(total capacity {r.total_capacity}, {r.wasted_seats} seats unused)"
        ),
    )


def strict_combination(ctx):
    adjacency = build_strict_adjacency(ctx.joinable_tables, ctx.joins)
    return _combination(ctx, adjacency, "combination_strict", "")


def permissive_combination(ctx):
    if len(ctx.joinable_tables) >= 2:
        logger.warning("No configured join covers party of %d. Using permissive join logic.",
                       ctx.party_size)
    adjacency = build_permissive_adjacency(ctx.joinable_tables)
    return _combination(ctx, adjacency, "combination_permissive", " (ad-hoc)")


ALLOCATION_STRATEGIES = (
    exact_fit,
    standalone_fit,
    preconfigured_join,
    strict_combination,
    permissive_combination,
)


def select_allocation(ctx, strategies=ALLOCATION_STRATEGIES):
    for strategy in strategies:
        result = strategy(ctx)
        if result is not None:
            logger.info(
                "Allocated tables %s via %s (%d wasted seats)",
                result.table_numbers, result.strategy, result.wasted_seats,
            )
            return result

    logger.warning("No suitable allocation found for party of %d", ctx.party_size)
    return AllocationResult.failure(
        f"Cannot accommodate party of {ctx.party_size}. "
        f"Largest available table capacity is {ctx.largest_capacity}. "
        f"Consider joining tables or choosing a different time."
    )

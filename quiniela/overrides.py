"""
Administrator decisions layered on top of computed standings and slots.

The ledger never edits the base computation: every pass rebuilds standings from
results, then asks the ledger to replay the recorded decisions. A decision is
only replayed while the ambiguity it settled still exists exactly as recorded;
otherwise it is stale and the affected rows stay ``needs_manual``.
"""

import logging
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .errors import ManualOverrideRejected
from .placeholders import BracketSlot
from .standings import GroupStandings, partition
from .thirds import ThirdPlaceRanking, validate_manual_selection

logger = logging.getLogger(__name__)


class GroupOrderOverride:
    def __init__(self, positions: Dict[int, int], reason: Optional[str] = None):
        self.positions = positions  # team_id -> position, ambiguous rows only
        self.reason = reason


class ThirdPlaceOverride:
    def __init__(self, qualified: Dict[int, bool], reason: Optional[str] = None):
        self.qualified = qualified  # team_id -> qualified, tie block only
        self.reason = reason


class SlotOverride:
    def __init__(self, team_id: Optional[int], reason: Optional[str] = None):
        self.team_id = team_id
        self.reason = reason


class ManualOverrideLedger:
    """Recorded manual decisions for one season."""

    def __init__(self):
        self.group_orders: Dict[str, GroupOrderOverride] = {}
        self.third_places: Optional[ThirdPlaceOverride] = None
        self.slots: Dict[Tuple[int, str], SlotOverride] = {}

    @classmethod
    def from_records(
        cls,
        group_rows: Iterable = (),
        third_rows: Iterable = (),
        slot_rows: Iterable = (),
    ) -> "ManualOverrideLedger":
        """
        Rebuild the ledger from persisted rows.

        Only rows flagged ``manual_override`` are taken into account. Rows are
        expected to expose the attribute names of the storage models.
        """
        ledger = cls()

        for row in group_rows:
            if not row.manual_override or row.position is None:
                continue
            entry = ledger.group_orders.setdefault(row.group_code, GroupOrderOverride({}, row.manual_reason))
            entry.positions[row.team_id] = row.position

        qualified = {}
        reason = None
        for row in third_rows:
            if row.manual_override:
                qualified[row.team_id] = bool(row.is_qualified)
                reason = reason or row.manual_reason
        if qualified:
            ledger.third_places = ThirdPlaceOverride(qualified, reason)

        for row in slot_rows:
            if row.manual_override:
                ledger.slots[(row.match_number, row.side)] = SlotOverride(row.team_id, row.manual_reason)

        return ledger

    # -- group order --------------------------------------------------------

    def record_group_order(
        self,
        group: GroupStandings,
        ordered_team_ids: Sequence[int],
        reason: Optional[str] = None,
    ) -> GroupOrderOverride:
        """
        Validate and record a manual order for an ambiguous group.

        ``ordered_team_ids`` lists every team of the group in final order. Only
        rows flagged ``needs_manual`` may move, and only within the positions
        of their own tied block; every other row must stay on its computed
        position.
        """
        if not group.standings:
            raise ManualOverrideRejected(f"No teams found for group {group.group_code}")

        ordered = list(ordered_team_ids)
        expected = len(group.standings)
        if len(ordered) != expected:
            raise ManualOverrideRejected(f"ordered_team_ids must have exactly {expected} team ids")
        if len(set(ordered)) != len(ordered):
            raise ManualOverrideRejected("ordered_team_ids contains duplicates")

        rows = {row.team_id: row for row in group.standings}
        for team_id in ordered:
            if team_id not in rows:
                raise ManualOverrideRejected(f"team_id not in group {group.group_code}: {team_id}")

        ambiguous = {team_id for team_id, row in rows.items() if row.needs_manual}
        if not ambiguous:
            raise ManualOverrideRejected(f"Group {group.group_code} has no positions awaiting a manual decision")

        block_ranges = {}
        standings = sorted(group.standings, key=lambda r: r.position)
        def same_block(a, b):
            return a.needs_manual and b.needs_manual and a.tie_block == b.tie_block

        for start, stop in partition(standings, same_block):
            for row in standings[start:stop]:
                block_ranges[row.team_id] = (start + 1, stop)

        positions = {}
        for index, team_id in enumerate(ordered):
            position = index + 1
            row = rows[team_id]
            if team_id in ambiguous:
                first, last = block_ranges[team_id]
                if not first <= position <= last:
                    raise ManualOverrideRejected(
                        f"Cannot move team_id {team_id} to position {position}: "
                        f"it is tied only for positions {first}-{last}"
                    )
                positions[team_id] = position
            elif row.position != position:
                raise ManualOverrideRejected(
                    f"Cannot move team_id {team_id}: position {row.position} is not ambiguous"
                )

        override = GroupOrderOverride(positions, reason or "Manual group order")
        self.group_orders[group.group_code] = override
        logger.info("Recorded manual order for group %s: %s", group.group_code, positions)
        return override

    def apply_group_order(self, group: GroupStandings) -> GroupStandings:
        """Replay the recorded order of ``group``, if any and still valid."""
        override = self.group_orders.get(group.group_code)
        if override is None:
            return group

        flagged = {row.team_id: row.position for row in group.standings if row.needs_manual}
        if set(flagged) != set(override.positions) or set(flagged.values()) != set(override.positions.values()):
            logger.warning(
                "Ignoring stale manual order for group %s: ambiguous teams are now %s",
                group.group_code, sorted(flagged),
            )
            return group

        rows = []
        for row in group.standings:
            row = row.copy()
            if row.team_id in override.positions:
                row.position = override.positions[row.team_id]
                row.needs_manual = False
                row.manual_override = True
                row.manual_reason = override.reason
            rows.append(row)
        rows.sort(key=lambda r: r.position)
        return group.replace(rows)

    # -- third places -------------------------------------------------------

    def record_third_place_selection(
        self,
        ranking: ThirdPlaceRanking,
        qualified_team_ids: Sequence[int],
        reason: Optional[str] = None,
    ) -> ThirdPlaceOverride:
        """Validate and record which tied entries take the open cutoff slots."""
        chosen = validate_manual_selection(ranking, qualified_team_ids)
        decision = {team_id: team_id in chosen for team_id in ranking.tie_team_ids}
        self.third_places = ThirdPlaceOverride(decision, reason)
        logger.info("Recorded manual third-place cutoff: %s", decision)
        return self.third_places

    def apply_third_place_selection(self, ranking: ThirdPlaceRanking) -> ThirdPlaceRanking:
        """Replay the recorded cutoff decision while the tie block is unchanged."""
        override = self.third_places
        if override is None:
            return ranking

        if set(override.qualified) != ranking.tie_team_ids:
            logger.warning(
                "Ignoring stale third-place decision: tie block is now %s",
                sorted(ranking.tie_team_ids),
            )
            return ranking

        entries = []
        for entry in ranking.entries:
            entry = entry.copy()
            if entry.team_id in override.qualified:
                entry.is_qualified = override.qualified[entry.team_id]
                entry.needs_manual = False
                entry.manual_override = True
                entry.manual_reason = override.reason
            entries.append(entry)
        return ranking.replace(entries)

    # -- bracket slots ------------------------------------------------------

    def record_slot(
        self,
        slot: BracketSlot,
        team_id: Optional[int],
        eligible_team_ids: Set[int],
        slots: Sequence[BracketSlot],
        reason: Optional[str] = None,
    ) -> SlotOverride:
        """
        Validate and record a forced slot occupant.

        Only slots that are pending, or already overridden, may be set.
        ``team_id`` None clears the slot back to pending while keeping
        automatic resolution away from it.
        """
        if not slot.needs_manual and not slot.manual_override:
            raise ManualOverrideRejected(
                f"Slot {slot.match_number}/{slot.side} does not allow manual override (already resolved)"
            )

        if team_id is not None:
            if team_id not in eligible_team_ids:
                raise ManualOverrideRejected(f"team_id is not eligible for this slot: {team_id}")
            for other in slots:
                if other.key != slot.key and other.round == slot.round and other.resolved_team_id == team_id:
                    raise ManualOverrideRejected(f"team_id already used in another slot: {team_id}")

        override = SlotOverride(team_id, (reason or "").strip() or None)
        self.slots[slot.key] = override
        logger.info("Recorded manual slot %s/%s -> %s", slot.match_number, slot.side, team_id)
        return override

    def apply_slots(self, slots: Iterable[BracketSlot]) -> List[BracketSlot]:
        """Overlay recorded slot decisions, marking them manual."""
        result = []
        for slot in slots:
            override = self.slots.get(slot.key)
            if override is not None:
                slot = slot.copy()
                slot.resolved_team_id = override.team_id
                slot.manual_override = True
                slot.manual_reason = override.reason
                slot.pending_reason = None if override.team_id is not None else "Cleared by administrator"
            result.append(slot)
        return result

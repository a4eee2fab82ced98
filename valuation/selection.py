"""
Cascading hierarchy selection.

The form walks district → circle → {mouza, lot} → village. Picking a new value
for a level invalidates every level that depends on it, so a stale child code
can never be submitted against a different parent.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple, Union

log = logging.getLogger(__name__)


DISTRICT = "district"
CIRCLE = "circle"
MOUZA = "mouza"
LOT = "lot"
VILLAGE = "village"

LEVELS = (DISTRICT, CIRCLE, MOUZA, LOT, VILLAGE)

# level -> levels whose options are fetched using it
DEPENDENTS: Dict[str, Tuple[str, ...]] = {
    DISTRICT: (CIRCLE,),
    CIRCLE: (MOUZA, LOT),
    MOUZA: (VILLAGE,),
    LOT: (VILLAGE,),
    VILLAGE: (),
}


@dataclass(frozen=True)
class Unselected:
    @property
    def code(self) -> Optional[str]:
        return None


@dataclass(frozen=True)
class Selected:
    code: str


LevelState = Union[Unselected, Selected]

UNSELECTED = Unselected()


def transitive_dependents(level: str) -> List[str]:
    """All levels reachable from level, parents before children, no repeats."""
    ordered: List[str] = []
    pending = list(DEPENDENTS[level])
    while pending:
        current = pending.pop(0)
        if current in ordered:
            continue
        ordered.append(current)
        pending.extend(DEPENDENTS[current])
    return ordered


def parents(level: str) -> List[str]:
    """Levels that level directly depends on."""
    return [parent for parent in LEVELS if level in DEPENDENTS[parent]]


class HierarchySelection:
    """
    Current selection of each hierarchy level.

    Usage:
        selection = HierarchySelection()
        selection.select("district", "D01")
        selection.select("circle", "C01")
        cleared = selection.select("district", "D02")  # ["circle", "mouza", "lot", "village"]
    """

    def __init__(self):
        self._states: Dict[str, LevelState] = {level: UNSELECTED for level in LEVELS}

    def state(self, level: str) -> LevelState:
        return self._states[level]

    def code(self, level: str) -> Optional[str]:
        return self._states[level].code

    def is_selected(self, level: str) -> bool:
        return isinstance(self._states[level], Selected)

    def select(self, level: str, code: Optional[str]) -> List[str]:
        """
        Set a level and clear its transitive dependents.

        An empty code clears the level. Re-selecting the current code changes
        nothing. Returns the dependent levels that were reset.
        """
        if level not in self._states:
            raise KeyError(level)
        new_state: LevelState = Selected(code) if code else UNSELECTED
        if new_state == self._states[level]:
            return []

        self._states[level] = new_state
        cleared = []
        for dependent in transitive_dependents(level):
            if self.is_selected(dependent):
                cleared.append(dependent)
            self._states[dependent] = UNSELECTED
        if cleared:
            log.debug(f"{level} changed to {code!r}; cleared {', '.join(cleared)}")
        return cleared

    def clear(self, level: str) -> List[str]:
        return self.select(level, None)

    def reset(self):
        for level in LEVELS:
            self._states[level] = UNSELECTED

    def is_complete(self, levels=(DISTRICT, CIRCLE, MOUZA, LOT)) -> bool:
        return all(self.is_selected(level) for level in levels)

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {level: self.code(level) for level in LEVELS}

    @classmethod
    def from_dict(cls, data: Dict[str, Optional[str]]) -> "HierarchySelection":
        """
        Restore codes in top-down order so parents never clear restored children.

        A level whose parents are not all selected is left unselected.
        """
        selection = cls()
        for level in LEVELS:
            code = data.get(level)
            if not code:
                continue
            missing = [parent for parent in parents(level) if not selection.is_selected(parent)]
            if missing:
                log.warning(f"Ignoring {level} {code!r}: {', '.join(missing)} not selected")
                continue
            selection._states[level] = Selected(code)
        return selection

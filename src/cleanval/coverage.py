"""Study-coverage selection: how many cleaning validation studies are needed.

Within each (line, dosage form) group, trains are ranked by worst-case
RPN (highest first, ties in train order) and walked greedily: a train is
selected as a study when it adds at least one machine not yet covered.
This is a greedy approximation to minimum set cover, not an optimum; the
risk ranking decides which train represents shared equipment.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Set, Tuple

from cleanval.trains import Train


@dataclass(frozen=True)
class Study:
    """A train selected as a validation study."""

    study_number: int
    train: Train
    rpn: int
    machine_ids: Tuple[int, ...]
    new_machine_ids: Tuple[int, ...]

    @property
    def justification(self) -> str:
        new = ", ".join(str(m) for m in self.new_machine_ids)
        if self.study_number == 1:
            return f"Highest risk train (RPN {self.rpn}); covers machines {new}"
        return f"Adds uncovered machines {new} (RPN {self.rpn})"


@dataclass
class StudySelection:
    """Selected studies for one (line, dosage form) group."""

    line: str
    dosage_form: str
    studies: List[Study] = field(default_factory=list)
    train_count: int = 0

    @property
    def count(self) -> int:
        return len(self.studies)

    @property
    def selected_trains(self) -> List[Train]:
        return [s.train for s in self.studies]

    @property
    def covered_machine_ids(self) -> Set[int]:
        covered: Set[int] = set()
        for study in self.studies:
            covered.update(study.machine_ids)
        return covered

    @property
    def savings_percent(self) -> float:
        """Share of trains that need no study of their own."""
        if self.train_count == 0:
            return 0.0
        return (self.train_count - self.count) / self.train_count * 100


@dataclass
class CoverageReport:
    """Study selections for every group plus the overall total."""

    groups: Dict[Tuple[str, str], StudySelection] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return sum(g.count for g in self.groups.values())

    @property
    def total_trains(self) -> int:
        return sum(g.train_count for g in self.groups.values())

    @property
    def savings_percent(self) -> float:
        if self.total_trains == 0:
            return 0.0
        return (self.total_trains - self.total) / self.total_trains * 100


def select_required_studies(trains: Sequence[Train]) -> StudySelection:
    """Greedy risk-ranked cover of one group's machines.

    Args:
        trains: Trains of a single (line, dosage form) group

    Returns:
        StudySelection listing studies in selection order
    """
    line, dosage_form = trains[0].group if trains else ("", "")
    selection = StudySelection(line=line, dosage_form=dosage_form, train_count=len(trains))

    # sorted() is stable, so equal RPNs keep their incoming order
    ranked = sorted(trains, key=lambda t: t.worst_rpn, reverse=True)
    covered: Set[int] = set()
    for train in ranked:
        new_ids = [m for m in train.machine_ids if m not in covered]
        if not new_ids:
            continue
        covered.update(train.machine_ids)
        selection.studies.append(
            Study(
                study_number=len(selection.studies) + 1,
                train=train,
                rpn=train.worst_rpn,
                machine_ids=tuple(train.machine_ids),
                new_machine_ids=tuple(new_ids),
            )
        )
    return selection


def select_studies_by_group(trains: Sequence[Train]) -> CoverageReport:
    """Run :func:`select_required_studies` for every (line, dosage form) group."""
    grouped: Dict[Tuple[str, str], List[Train]] = {}
    for train in trains:
        grouped.setdefault(train.group, []).append(train)
    report = CoverageReport()
    for group, members in grouped.items():
        report.groups[group] = select_required_studies(members)
    return report

"""
Manager rosters.
A manager sees the cleaners mapped in manager_cleaners; managers without a mapping
(and the global roles) see everybody.
"""
from dataclasses import dataclass, field
from typing import List, Optional, Set, Dict, Any

import structlog
from sqlalchemy.orm import Session

from ..models.models import Cleaner, ManagerCleaner
from ..schemas.analytics import CleanerSummary
from .identity import normalize_cleaner_name, normalize_cleaner_numeric_id

log = structlog.get_logger(__name__)

GLOBAL_ROLES = {"admin", "ops_manager"}


def is_global_role(role: Optional[str]) -> bool:
    return (role or "").lower() in GLOBAL_ROLES


def fetch_manager_cleaner_ids(db: Session, manager_id: Optional[str]) -> List[str]:
    if not manager_id:
        return []
    rows = db.query(ManagerCleaner.cleaner_id).filter(ManagerCleaner.manager_id == str(manager_id)).all()
    return [r.cleaner_id for r in rows if r.cleaner_id]


def fetch_cleaners_by_ids(db: Session, cleaner_ids: List[str]) -> List[CleanerSummary]:
    if not cleaner_ids:
        return []
    rows = db.query(Cleaner).filter(Cleaner.id.in_(list(cleaner_ids))).order_by(Cleaner.first_name.asc()).all()
    return [CleanerSummary.model_validate(c) for c in rows]


def fetch_all_cleaners(db: Session) -> List[CleanerSummary]:
    rows = db.query(Cleaner).order_by(Cleaner.first_name.asc()).all()
    return [CleanerSummary.model_validate(c) for c in rows]


def resolve_manager_cleaner_roster(db: Session, manager_id: Optional[str]) -> List[CleanerSummary]:
    ids = fetch_manager_cleaner_ids(db, manager_id)
    if not ids:
        return fetch_all_cleaners(db)
    return fetch_cleaners_by_ids(db, ids)


def roster_name(cleaner: CleanerSummary) -> str:
    return normalize_cleaner_name(f"{cleaner.first_name or ''} {cleaner.last_name or ''}")


@dataclass
class CleanerScope:
    """Which attendance/selection/photo rows belong to the caller's roster."""
    roster: List[CleanerSummary]
    restrict: bool = False
    id_set: Set[str] = field(default_factory=set)
    numeric_id_set: Set[int] = field(default_factory=set)
    names_by_id: Dict[str, str] = field(default_factory=dict)
    name_set: Set[str] = field(default_factory=set)

    @classmethod
    def build(cls, roster: List[CleanerSummary], scoped_ids: List[str], restrict: bool) -> "CleanerScope":
        unique: Dict[str, CleanerSummary] = {}
        for c in roster:
            unique[c.id] = c
        roster = list(unique.values())
        names_by_id = {c.id: roster_name(c) for c in roster}
        filter_ids = scoped_ids if restrict else []
        return cls(
            roster=roster,
            restrict=restrict,
            id_set={str(i) for i in filter_ids if i},
            numeric_id_set={n for n in (normalize_cleaner_numeric_id(i) for i in filter_ids) if n is not None},
            names_by_id=names_by_id,
            name_set=set(names_by_id.values()),
        )

    def matches(self, cleaner_uuid: Optional[str] = None, cleaner_id: Any = None, cleaner_name: Optional[str] = None) -> bool:
        if not self.restrict:
            return True
        if cleaner_uuid and cleaner_uuid in self.id_set:
            return True
        if cleaner_id is not None and str(cleaner_id).strip():
            raw = str(cleaner_id)
            if raw in self.id_set:
                return True
            numeric = normalize_cleaner_numeric_id(raw)
            if numeric is not None and numeric in self.numeric_id_set:
                return True
        if cleaner_uuid:
            numeric = normalize_cleaner_numeric_id(cleaner_uuid)
            if numeric is not None and numeric in self.numeric_id_set:
                return True
        if cleaner_name:
            if normalize_cleaner_name(cleaner_name) in self.name_set:
                return True
        return False


def build_cleaner_scope(db: Session, manager_id: Optional[str], role: Optional[str]) -> CleanerScope:
    if is_global_role(role):
        return CleanerScope.build(fetch_all_cleaners(db), [], restrict=False)
    scoped_ids = fetch_manager_cleaner_ids(db, manager_id)
    if scoped_ids:
        return CleanerScope.build(fetch_cleaners_by_ids(db, scoped_ids), scoped_ids, restrict=True)
    log.info("roster_unmapped_manager", manager_id=manager_id)
    return CleanerScope.build(fetch_all_cleaners(db), [], restrict=False)

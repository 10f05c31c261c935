from dataclasses import dataclass, field
from typing import Dict, List


@dataclass(frozen=True)
class AdminStatsDTO:
    total_users: int
    total_apartments: int
    occupied_apartments: int
    active_residents: int
    occupancy_rate: int
    pending_requests: int
    recent_invoices: List[dict] = field(default_factory=list)
    recent_requests: List[dict] = field(default_factory=list)


@dataclass(frozen=True)
class StaffStatsDTO:
    pending_requests: int
    assigned_total: int
    assigned_by_status: Dict[str, int] = field(default_factory=dict)
    recent_assigned: List[dict] = field(default_factory=list)


@dataclass(frozen=True)
class HomeDTO:
    apartments: List[dict]
    amenities: List[dict]
    posts: List[dict]
    stats: Dict[str, int]

"""Resource allocation engine: host resources to service tuning values."""

from typing import List, NamedTuple, Optional, Tuple

from ..models.data_models import AllocationPlan, AllocationTier, ResourceSnapshot
from ..utils.logging import get_logger

MIN_START_SERVERS = 2
MIN_SPARE_SERVERS = 1
MIN_MAX_SPARE_SERVERS = 3
POST_MAX_OVERHEAD_MB = 8
DB_CONNECTION_HEADROOM = 50
# Top tier sizes the InnoDB buffer pool from RAM instead of a constant
XLARGE_BUFFER_POOL_PERCENT = 45


class TierProfile(NamedTuple):
    """One row of the allocation table."""
    tier: AllocationTier
    ram_upper_mb: Optional[int]
    max_children: int
    memory_limit_mb: int
    upload_max_mb: int
    buffer_pool_mb: Optional[int]
    cache_max_mb: int
    start_multiplier: int
    min_spare_multiplier: int
    max_spare_multiplier: int


# Ordered by ascending RAM; a snapshot falls in the first row whose upper
# bound it is strictly below.
TIER_TABLE: Tuple[TierProfile, ...] = (
    TierProfile(AllocationTier.SMALL, 2048, 10, 256, 64, 400, 128, 2, 1, 3),
    TierProfile(AllocationTier.MEDIUM, 4096, 20, 256, 128, 800, 128, 2, 1, 3),
    TierProfile(AllocationTier.LARGE, 8192, 30, 384, 256, 1800, 256, 2, 1, 3),
    TierProfile(AllocationTier.XLARGE, None, 60, 512, 512, None, 512, 3, 2, 4),
)


def select_tier(total_ram_mb: int) -> TierProfile:
    """Return the tier profile for a RAM size in MB."""
    for profile in TIER_TABLE:
        if profile.ram_upper_mb is None or total_ram_mb < profile.ram_upper_mb:
            return profile
    return TIER_TABLE[-1]


def compute_allocation(snapshot: ResourceSnapshot) -> AllocationPlan:
    """Compute the allocation plan for a resource snapshot.

    Pure and total: the same snapshot always yields an equal plan and every
    snapshot accepted by ResourceSnapshot (RAM >= 512MB) produces one.

    Args:
        snapshot: Probed host resources

    Returns:
        Allocation plan for nginx, PHP-FPM, MariaDB and Redis
    """
    profile = select_tier(snapshot.total_ram_mb)
    cores = snapshot.cpu_cores

    start_servers = max(cores * profile.start_multiplier, MIN_START_SERVERS)
    min_spare = max(cores * profile.min_spare_multiplier, MIN_SPARE_SERVERS)
    max_spare = max(cores * profile.max_spare_multiplier, MIN_MAX_SPARE_SERVERS)

    if profile.buffer_pool_mb is None:
        buffer_pool_mb = snapshot.total_ram_mb * XLARGE_BUFFER_POOL_PERCENT // 100
    else:
        buffer_pool_mb = profile.buffer_pool_mb

    return AllocationPlan(
        tier=profile.tier,
        web_worker_count=cores,
        runtime_max_children=profile.max_children,
        runtime_start_servers=start_servers,
        runtime_min_spare=min_spare,
        runtime_max_spare=max_spare,
        runtime_memory_limit_mb=profile.memory_limit_mb,
        upload_max_mb=profile.upload_max_mb,
        post_max_mb=profile.upload_max_mb + POST_MAX_OVERHEAD_MB,
        db_buffer_pool_mb=buffer_pool_mb,
        db_log_file_mb=buffer_pool_mb // 4,
        db_max_connections=profile.max_children + DB_CONNECTION_HEADROOM,
        cache_max_memory_mb=profile.cache_max_mb,
    )


def plan_summary(plan: AllocationPlan) -> List[Tuple[str, str]]:
    """Label/value rows describing a plan, grouped by service."""
    return [
        ("Allocation Tier", plan.tier.value),
        ("Nginx Workers", str(plan.web_worker_count)),
        ("Nginx Max Body Size", plan.upload_max),
        ("PHP Max Children", str(plan.runtime_max_children)),
        ("PHP Start Servers", str(plan.runtime_start_servers)),
        ("PHP Min Spare Servers", str(plan.runtime_min_spare)),
        ("PHP Max Spare Servers", str(plan.runtime_max_spare)),
        ("PHP Memory Limit", plan.memory_limit),
        ("PHP Upload Max Filesize", plan.upload_max),
        ("PHP Post Max Size", plan.post_max),
        ("InnoDB Buffer Pool", f"{plan.db_buffer_pool_mb} MB"),
        ("InnoDB Log File Size", f"{plan.db_log_file_mb} MB"),
        ("MariaDB Max Connections", str(plan.db_max_connections)),
        ("Redis Max Memory", f"{plan.cache_max_memory_mb} MB"),
    ]


class AllocationEngine:
    """Computes allocation plans for the host."""

    def __init__(self):
        self.logger = get_logger("allocation")

    def compute(self, snapshot: ResourceSnapshot) -> AllocationPlan:
        """Compute and log a plan.

        Args:
            snapshot: Probed host resources

        Returns:
            Allocation plan
        """
        plan = compute_allocation(snapshot)
        self.logger.info(
            f"Allocation for {snapshot.cpu_cores} cores / {snapshot.total_ram_mb}MB RAM: "
            f"tier={plan.tier.value}, php_max_children={plan.runtime_max_children}, "
            f"buffer_pool={plan.db_buffer_pool_mb}MB"
        )
        return plan

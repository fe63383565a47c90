"""
WordPress Server Manager

Provisions a single Ubuntu host as a tuned WordPress server (Nginx, MariaDB,
PHP-FPM, Redis) and manages the sites hosted on it.
"""

__version__ = "1.0.0"
__author__ = "WordPress Server Team"

from .orchestrator.main import WordPressServerOrchestrator
from .models.data_models import AllocationPlan, ResourceSnapshot, SiteRecord

__all__ = [
    "WordPressServerOrchestrator",
    "AllocationPlan",
    "ResourceSnapshot",
    "SiteRecord",
]

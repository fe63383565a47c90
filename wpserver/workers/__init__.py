"""Workers wrapping the external system tools."""

from .backups import BackupManager
from .base import BaseWorker
from .certificates import CertificateClient
from .database import DatabaseClient
from .firewall import Firewall
from .nginx import NginxValidator
from .packages import PackageManager
from .probe import ResourceProbe
from .services import ServiceManager
from .wordpress import WordPressInstaller

__all__ = [
    "BackupManager",
    "BaseWorker",
    "CertificateClient",
    "DatabaseClient",
    "Firewall",
    "NginxValidator",
    "PackageManager",
    "ResourceProbe",
    "ServiceManager",
    "WordPressInstaller",
]

"""Site backups: database dump, file archive, vhost copy and manifest."""

import shutil
import time
from pathlib import Path
from typing import List, Optional, Union

from ..exceptions import SiteNotFoundError
from ..models.data_models import TIMESTAMP_FORMAT, BackupResult, SiteRecord, now
from ..stores.files import atomic_write
from .base import BaseWorker, Runner
from .database import DatabaseClient

BACKUP_DIR_FORMAT = "%Y%m%d_%H%M%S"
CRON_SCHEDULE = "0 2 * * *"


def cron_entry(command: str, log_file: Union[str, Path]) -> str:
    """Content of the daily backup cron file."""
    return (
        "# WordPress server - automated backups\n"
        "# Daily backup at 2 AM\n"
        "\n"
        f"{CRON_SCHEDULE} root {command} >> {log_file} 2>&1\n"
    )


class BackupManager(BaseWorker):
    """Creates and prunes per-site backups under one backup root."""

    def __init__(self, backup_root: Union[str, Path], web_root: Union[str, Path],
                 nginx_sites_dir: Union[str, Path], database: Optional[DatabaseClient] = None,
                 runner: Optional[Runner] = None, dry_run: bool = False):
        """Initialize backup manager.

        Args:
            backup_root: Directory holding one folder per backup
            web_root: Directory holding one folder per site
            nginx_sites_dir: nginx sites-available directory
            database: Client used for SQL dumps
            runner: Replacement for subprocess.run
            dry_run: Log commands instead of executing them
        """
        super().__init__(runner=runner, dry_run=dry_run, name="backups")
        self.backup_root = Path(backup_root)
        self.web_root = Path(web_root)
        self.nginx_sites_dir = Path(nginx_sites_dir)
        self.database = database or DatabaseClient(runner=runner, dry_run=dry_run)

    def backup_site(self, record: SiteRecord) -> BackupResult:
        """Back up one site into ``<root>/YYYYmmdd_HHMMSS_<domain>/``.

        Raises:
            SiteNotFoundError: The site has no public_html directory
            ExternalToolError: mysqldump or tar failed
        """
        site_dir = self.web_root / record.domain
        if not (site_dir / "public_html").is_dir():
            raise SiteNotFoundError(record.domain)

        created = now()
        directory = self.backup_root / f"{created.strftime(BACKUP_DIR_FORMAT)}_{record.domain}"
        directory.mkdir(parents=True, exist_ok=True)
        result = BackupResult(domain=record.domain, directory=directory, created_at=created)

        self.logger.info(f"Backing up database: {record.database_name}")
        result.database_dump = self.database.dump(
            record.database_name, directory / "database.sql.gz"
        )

        self.logger.info("Backing up files")
        archive = directory / "files.tar.gz"
        self.run(["tar", "-czf", str(archive), "-C", str(site_dir), "public_html"])
        result.files_archive = archive

        vhost = self.nginx_sites_dir / record.domain
        if vhost.exists():
            result.nginx_config = directory / "nginx.conf"
            shutil.copy2(vhost, result.nginx_config)

        manifest = directory / "manifest.txt"
        atomic_write(manifest, "\n".join([
            f"Backup Date: {created.strftime(TIMESTAMP_FORMAT)}",
            f"Domain: {record.domain}",
            f"Database: {record.database_name}",
            "Files: files.tar.gz",
            "Database Dump: database.sql.gz",
            f"Nginx Config: {'nginx.conf' if result.nginx_config else 'none'}",
        ]) + "\n", mode=0o600)
        result.manifest = manifest

        self.logger.info(f"Backup completed: {directory}")
        return result

    def list_backups(self, domain: Optional[str] = None) -> List[Path]:
        """Backup directories, newest first, optionally for one domain."""
        if not self.backup_root.is_dir():
            return []
        backups = [
            path for path in self.backup_root.iterdir()
            if path.is_dir() and (domain is None or path.name.endswith(f"_{domain}"))
        ]
        return sorted(backups, key=lambda path: path.name, reverse=True)

    def cleanup_old_backups(self, days: int = 7) -> List[Path]:
        """Delete backup directories last modified more than ``days`` ago.

        Returns:
            Removed directories
        """
        cutoff = time.time() - days * 86400
        removed = []
        for path in self.list_backups():
            if path.stat().st_mtime < cutoff:
                if not self.dry_run:
                    shutil.rmtree(path)
                removed.append(path)
                self.logger.info(f"Removed old backup {path}")

        self.logger.info(
            f"Old backups cleaned up (retention: {days} days, removed {len(removed)})"
        )
        return removed

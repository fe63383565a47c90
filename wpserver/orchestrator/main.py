"""Main orchestrator for WordPress server provisioning and site management."""

import re
import shutil
import socket
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..analysis.allocation import AllocationEngine, plan_summary
from ..analysis.inspection import SettingDrift, compare_with_plan, read_live_settings
from ..exceptions import (
    ConfigurationError, DuplicateDomainError, InputValidationError,
    PreconditionError, SiteExistsError, SiteNotFoundError, WPServerError,
)
from ..models.data_models import (
    AllocationPlan, BackupResult, CommandResult, ConfigTarget, ReconfigureSummary,
    RenderResult, ResourceSnapshot, ServiceStatus, SiteProvisionResult, SoftwareComponent,
    SystemInfo, now,
)
from ..rendering.renderer import ConfigRenderer
from ..stores.credentials import CredentialStore
from ..stores.files import atomic_write
from ..stores.registry import SiteRegistry
from ..utils.config import Config
from ..utils.logging import get_logger
from ..utils.passwords import generate_db_identifier, generate_password
from ..utils.validation import validate_domain, validate_email
from ..workers.backups import BackupManager, cron_entry
from ..workers.base import Runner
from ..workers.certificates import CertificateClient
from ..workers.database import DatabaseClient
from ..workers.firewall import Firewall
from ..workers.nginx import NginxValidator
from ..workers.packages import (
    BASE_PACKAGES, CERTBOT_PACKAGES, MARIADB_PACKAGES, MONITORING_PACKAGES,
    NGINX_PACKAGES, REDIS_PACKAGES, PackageManager, php_packages,
)
from ..workers.probe import ResourceProbe
from ..workers.services import ServiceManager
from ..workers.wordpress import WordPressInstaller

REPORT_TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"
WP_CONFIG_DEFINE = r"define\(\s*'{}'\s*,\s*'([^']*)'\s*\)"

ResetCallback = Callable[[Path], bool]
ConfirmCallback = Callable[[str], bool]


class WordPressServerOrchestrator:
    """Wires configuration, probe, allocation, rendering, stores and workers."""

    def __init__(self, config: Optional[Config] = None, runner: Optional[Runner] = None):
        """Initialize orchestrator.

        Args:
            config: Configuration instance
            runner: Replacement for subprocess.run shared by all workers
        """
        self.config = config or Config()
        self.logger = get_logger("orchestrator")
        dry_run = self.config.dry_run

        self.probe = ResourceProbe(runner=runner)
        self.engine = AllocationEngine()
        self.renderer = ConfigRenderer(dry_run=dry_run)
        self.registry = SiteRegistry(self.config.registry_file)
        self.credentials = CredentialStore(self.config.credentials_file)

        self.packages = PackageManager(runner=runner, dry_run=dry_run)
        self.services = ServiceManager(runner=runner, dry_run=dry_run)
        self.database = DatabaseClient(runner=runner, dry_run=dry_run)
        self.certificates = CertificateClient(runner=runner, dry_run=dry_run)
        self.wordpress = WordPressInstaller(runner=runner, dry_run=dry_run)
        self.firewall = Firewall(runner=runner, dry_run=dry_run)
        self.nginx = NginxValidator(runner=runner, dry_run=dry_run)
        self.backups = BackupManager(
            backup_root=self.config.backup_dir,
            web_root=self.config.web_root,
            nginx_sites_dir=self.config.nginx_conf_dir / "sites-available",
            database=self.database,
            runner=runner,
            dry_run=dry_run,
        )

        self._snapshot: Optional[ResourceSnapshot] = None
        self._plan: Optional[AllocationPlan] = None
        self._php_version: Optional[str] = None

    # ------------------------------------------------------------------
    # Shared state, computed once per invocation
    # ------------------------------------------------------------------

    def snapshot(self) -> ResourceSnapshot:
        if self._snapshot is None:
            self._snapshot = self.probe.snapshot()
        return self._snapshot

    def plan(self) -> AllocationPlan:
        if self._plan is None:
            self._plan = self.engine.compute(self.snapshot())
        return self._plan

    def php_version(self) -> str:
        if self._php_version is None:
            self._php_version = self.config.php_version or self.probe.php_major_version()
        return self._php_version

    def php_socket(self) -> str:
        return f"/run/php/php{self.php_version()}-fpm.sock"

    def php_fpm_service(self) -> str:
        return f"php{self.php_version()}-fpm"

    def site_dir(self, domain: str) -> Path:
        return self.config.web_root / domain

    # ------------------------------------------------------------------
    # Installation phases
    # ------------------------------------------------------------------

    def preflight(self) -> Tuple[SystemInfo, ResourceSnapshot]:
        """Phase 1: connectivity, operating system, RAM and disk.

        Raises:
            PreconditionError: Any check failed
        """
        self.logger.info("Phase 1: pre-flight checks")
        if not self.probe.has_internet():
            raise PreconditionError("No internet connection. Please check your network settings.")

        system = self.probe.detect_os()
        snapshot = self.snapshot()
        problems = self.probe.check_requirements(snapshot, self.config.min_disk_gb)
        if problems:
            raise PreconditionError("; ".join(problems))
        return system, snapshot

    def detect_software(self) -> Dict[str, SoftwareComponent]:
        """Phase 3: which stack components are already present."""
        self.logger.info("Phase 3: software detection")
        software = self.probe.detect_software()
        if not self.config.php_version:
            self._php_version = self.probe.php_major_version(software["php"])
        return software

    def install_packages(self, software: Dict[str, SoftwareComponent]):
        """Phase 4: install what is missing and start the services.

        Core components are required; certbot, monitoring tools and wp-cli
        only warn when they fail.
        """
        self.logger.info("Phase 4: package installation")
        php_version = self.php_version()

        self.packages.update()
        self.packages.install(BASE_PACKAGES)
        if not software["php"].installed:
            self.packages.add_php_repository()

        required = [
            ("nginx", NGINX_PACKAGES, "nginx"),
            ("mariadb", MARIADB_PACKAGES, "mariadb"),
            ("php", php_packages(php_version), self.php_fpm_service()),
            ("redis", REDIS_PACKAGES, "redis-server"),
        ]
        for name, package_set, service in required:
            if software[name].installed:
                self.logger.info(f"{name} already installed, skipping")
                continue
            self.packages.install(package_set)
            self.services.start_enable(service)

        if not software["certbot"].installed:
            self.packages.install(CERTBOT_PACKAGES, required=False)
        self.packages.install(MONITORING_PACKAGES, required=False)
        if not software["wp-cli"].installed:
            self.packages.install_wpcli()
        self.packages.cleanup()

    def write_service_configs(self, plan: AllocationPlan) -> List[RenderResult]:
        """Render every service configuration file for a plan."""
        php_version = self.php_version()
        targets = [
            (ConfigTarget.NGINX_MAIN, self.config.nginx_main_conf,
             {"cache_dir": self.config.get("nginx_cache_dir")}),
            (ConfigTarget.PHP_INI, self.config.php_ini_override(php_version), {}),
            (ConfigTarget.PHP_FPM_POOL, self.config.php_fpm_pool(php_version),
             {"php_socket": self.php_socket()}),
            (ConfigTarget.MARIADB, self.config.mariadb_conf_file, {}),
            (ConfigTarget.REDIS, self.config.redis_conf_file, {}),
        ]
        return [self.renderer.write(target, plan, path, **context)
                for target, path, context in targets]

    def apply_configs(self, results: List[RenderResult]):
        """Validate and activate written configuration.

        nginx and PHP-FPM are syntax-checked before any service is touched; a
        failed check restores every file written in the pass and raises.

        Raises:
            ConfigurationError: nginx -t or php-fpm -t rejected the new files
        """
        changed = {result.target for result in results if result.changed}
        php_targets = {ConfigTarget.PHP_INI, ConfigTarget.PHP_FPM_POOL}

        error = None
        if ConfigTarget.NGINX_MAIN in changed and not self.nginx.is_valid():
            error = "Nginx configuration test failed"
        elif changed & php_targets:
            test = self.services.run([f"php-fpm{self.php_version()}", "-t"], check=False)
            if not test.ok:
                error = f"PHP-FPM configuration test failed: {test.stderr.strip()}"

        if error:
            for result in results:
                self.renderer.restore(result)
            raise ConfigurationError(f"{error}; previous configuration restored")

        if ConfigTarget.NGINX_MAIN in changed:
            self.services.reload("nginx")
        if changed & php_targets:
            self.services.restart(self.php_fpm_service())
        if ConfigTarget.MARIADB in changed:
            self.services.restart("mariadb")
        if ConfigTarget.REDIS in changed:
            self.services.restart("redis-server")

    def configure_services(self) -> List[RenderResult]:
        """Phase 5: write and apply the service configuration."""
        self.logger.info("Phase 5: service configuration")
        results = self.write_service_configs(self.plan())
        self.apply_configs(results)
        return results

    def secure_database(self) -> bool:
        """Set a generated MariaDB root password and record it.

        Skipped when the root client option file already exists.

        Returns:
            True if the database was secured now
        """
        client_config = Path(self.config.get("mysql_client_config"))
        if client_config.exists():
            self.logger.info(f"MariaDB already secured ({client_config} exists)")
            return False

        root_password = generate_password(32)
        self.database.secure_installation(root_password)
        if not self.config.dry_run:
            atomic_write(client_config, self.database.client_config(root_password), mode=0o600)
        self.credentials.append("MariaDB Root Password", {"Password": root_password})
        self.logger.info(f"MariaDB secured and root password stored in {client_config}")
        return True

    def harden(self):
        """Phase 6: database root account and firewall."""
        self.logger.info("Phase 6: security")
        self.secure_database()
        self.firewall.configure()

    def setup_automation(self):
        """Phase 7: daily backup cron job and certificate renewal check."""
        self.logger.info("Phase 7: automation")
        command = f"{shutil.which('wpserver') or 'wpserver'} backup --all"
        cron_file = Path(self.config.get("cron_file"))
        if not self.config.dry_run:
            atomic_write(
                cron_file,
                cron_entry(command, self.config.reports_dir / "backup.log"),
                mode=0o644,
            )
        self.logger.info("Automated backup configured (daily at 2 AM)")

        if self.services.timer_exists("certbot"):
            self.logger.info("Certbot renewal timer is active")
        else:
            self.logger.warning("Certbot renewal timer not found; run 'wpserver renew-ssl' periodically")

    def run_installation(self, confirm: Optional[ConfirmCallback] = None) -> Optional[AllocationPlan]:
        """Install and tune the full stack.

        Args:
            confirm: Asked once before anything is installed; None proceeds

        Returns:
            The applied plan, or None if the operator declined
        """
        for directory in (self.config.base_dir / "config", self.config.backup_dir,
                          self.config.reports_dir):
            directory.mkdir(parents=True, exist_ok=True)

        self.preflight()

        self.logger.info("Phase 2: resource detection and allocation")
        plan = self.plan()

        software = self.detect_software()

        if confirm is not None and not self.config.auto_confirm:
            if not confirm("Proceed with installation?"):
                self.logger.info("Installation cancelled by operator")
                return None

        self.install_packages(software)
        self.configure_services()
        self.harden()
        self.setup_automation()
        self.logger.info("Installation completed")
        return plan

    # ------------------------------------------------------------------
    # Site lifecycle
    # ------------------------------------------------------------------

    def _validated_domain(self, domain: str) -> str:
        is_valid, error = validate_domain(domain)
        if not is_valid:
            raise InputValidationError(error)
        return domain.strip().lower()

    def _stale_database(self, domain: str) -> Tuple[Optional[str], Optional[str]]:
        """Database name and user of a leftover site, from registry or wp-config."""
        try:
            record = self.registry.find(domain)
            return record.database_name, record.database_user or None
        except SiteNotFoundError:
            pass

        wp_config = self.site_dir(domain) / "public_html" / "wp-config.php"
        if not wp_config.exists():
            return None, None
        text = wp_config.read_text(encoding="utf-8", errors="replace")
        name = re.search(WP_CONFIG_DEFINE.format("DB_NAME"), text)
        user = re.search(WP_CONFIG_DEFINE.format("DB_USER"), text)
        return (name.group(1) if name else None), (user.group(1) if user else None)

    def _remove_vhost(self, domain: str):
        for path in (self.config.nginx_site_enabled(domain),
                     self.config.nginx_site_available(domain)):
            if path.is_symlink() or path.exists():
                path.unlink()

    def reset_site(self, domain: str):
        """Remove every trace of a partially installed site."""
        self.logger.warning(f"Removing existing installation of {domain}")
        db_name, db_user = self._stale_database(domain)
        if db_name:
            self.database.drop_site_database(db_name, db_user)
        shutil.rmtree(self.site_dir(domain))
        try:
            self.registry.remove(domain)
        except SiteNotFoundError:
            pass
        self._remove_vhost(domain)
        self.logger.info(f"Old installation of {domain} removed")

    def _enable_vhost(self, domain: str, plan: AllocationPlan) -> RenderResult:
        """Write a site's vhost, link it and validate; restore on failure."""
        site_dir = self.site_dir(domain)
        result = self.renderer.write(
            ConfigTarget.NGINX_SITE,
            plan,
            self.config.nginx_site_available(domain),
            domain=domain,
            site_root=site_dir / "public_html",
            log_dir=site_dir / "logs",
            php_socket=self.php_socket(),
        )

        enabled = self.config.nginx_site_enabled(domain)
        created_link = False
        if not enabled.is_symlink() and not enabled.exists():
            enabled.parent.mkdir(parents=True, exist_ok=True)
            enabled.symlink_to(result.path)
            created_link = True

        if not result.changed and not created_link:
            return result

        if not self.nginx.is_valid():
            self.renderer.restore(result)
            if created_link:
                enabled.unlink()
            raise ConfigurationError(
                f"Nginx configuration test failed for {domain}; previous configuration restored"
            )
        self.services.reload("nginx")
        return result

    def _write_report(self, values: Dict[str, Any]) -> Path:
        report_path = self.config.reports_dir / (
            f"site-{values['domain']}-{now().strftime(REPORT_TIMESTAMP_FORMAT)}.txt"
        )
        values["report_path"] = report_path
        content = self.renderer.render_template("site-report.txt.j2", **values)
        atomic_write(report_path, content, mode=0o600)
        return report_path

    def wpcli_available(self) -> bool:
        return self.wordpress.has_wpcli()

    def add_site(self, domain: str, reset: Optional[ResetCallback] = None,
                 admin_user: str = "admin", admin_email: Optional[str] = None,
                 site_title: Optional[str] = None) -> SiteProvisionResult:
        """Provision a WordPress site.

        Args:
            domain: Site domain
            reset: Decides what to do with a leftover site directory; True
                wipes it, False (or no callback) cancels
            admin_user: WordPress admin login for the automatic install
            admin_email: WordPress admin email; the automatic install only
                runs when this is given and wp-cli is present
            site_title: Blog title, defaults to the domain

        Returns:
            Provisioning result

        Raises:
            InputValidationError: Invalid domain or admin email
            DuplicateDomainError: Domain already registered
            SiteExistsError: Leftover directory kept by the operator
            ConfigurationError: Generated vhost rejected by nginx -t
        """
        domain = self._validated_domain(domain)
        if admin_email:
            is_valid, error = validate_email(admin_email)
            if not is_valid:
                raise InputValidationError(error)
        if self.registry.exists(domain):
            raise DuplicateDomainError(domain)

        site_dir = self.site_dir(domain)
        if site_dir.exists():
            self.logger.warning(f"Site directory already exists at {site_dir}")
            if reset is None or not reset(site_dir):
                raise SiteExistsError(domain, str(site_dir))
            self.reset_site(domain)

        plan = self.plan()
        db_name = generate_db_identifier()
        db_user = generate_db_identifier()
        db_password = generate_password(32)
        admin_password = generate_password(16)
        site_root = site_dir / "public_html"

        self.logger.info(f"Setting up WordPress site for {domain}")
        for sub in ("public_html", "logs", "ssl"):
            (site_dir / sub).mkdir(parents=True, exist_ok=True)

        self.database.create_site_database(db_name, db_user, db_password)
        try:
            self.wordpress.download(site_root)
            self.wordpress.create_config(site_root, db_name, db_user, db_password)
            self.wordpress.set_permissions(site_root)
            self._enable_vhost(domain, plan)
        except Exception:
            # Neither the registry nor wp-config records this database yet
            self.logger.error(f"Site setup failed for {domain}; dropping database {db_name}")
            self.database.drop_site_database(db_name, db_user)
            raise

        self.registry.add(domain, db_name, db_user)
        self.credentials.append(domain, {
            "Domain": domain,
            "Database Name": db_name,
            "Database User": db_user,
            "Database Password": db_password,
            "WordPress Admin Password": admin_password,
        })

        installed = False
        site_title = site_title or domain
        if admin_email and self.wpcli_available():
            installed = self.wordpress.install(
                site_root, f"http://{domain}", site_title, admin_user,
                admin_password, admin_email.strip(),
            )
            if installed:
                self.wordpress.enable_object_cache(site_root)
        else:
            self.logger.info("WordPress installation must be completed via web browser")

        report_path = self._write_report({
            "created": now(),
            "hostname": socket.gethostname(),
            "domain": domain,
            "site_title": site_title if installed else None,
            "site_root": site_root,
            "log_dir": site_dir / "logs",
            "ssl_dir": site_dir / "ssl",
            "db_name": db_name,
            "db_user": db_user,
            "db_password": db_password,
            "admin_user": admin_user if installed else None,
            "admin_password": admin_password,
            "admin_email": admin_email if installed else None,
            "nginx_available": self.config.nginx_site_available(domain),
            "nginx_enabled": self.config.nginx_site_enabled(domain),
            "php_version": self.php_version(),
            "php_socket": self.php_socket(),
            "wordpress_version": self.wordpress.core_version(site_root) if installed else None,
            "wordpress_installed": installed,
            "credentials_file": self.config.credentials_file,
            "backup_dir": self.config.backup_dir,
        })

        self.logger.info(f"WordPress site created: {domain}")
        return SiteProvisionResult(
            domain=domain,
            database_name=db_name,
            database_user=db_user,
            site_root=site_root,
            admin_user=admin_user if installed else None,
            admin_email=admin_email if installed else None,
            wordpress_installed=installed,
            report_path=report_path,
        )

    def list_sites(self):
        return self.registry.list_all()

    def remove_site(self, domain: str, backup: bool = True) -> Optional[BackupResult]:
        """Delete a site: final backup, vhost, database, files and registry entry.

        Returns:
            The final backup, if one was taken

        Raises:
            SiteNotFoundError: Domain not registered
        """
        domain = self._validated_domain(domain)
        record = self.registry.find(domain)
        self.logger.warning(f"Removing WordPress site: {domain}")

        final_backup = None
        if backup and (self.site_dir(domain) / "public_html").is_dir():
            final_backup = self.backups.backup_site(record)

        self._remove_vhost(domain)
        self.database.drop_site_database(record.database_name, record.database_user or None)
        if self.site_dir(domain).exists():
            shutil.rmtree(self.site_dir(domain))
        self.registry.remove(domain)
        self.services.reload("nginx")

        self.logger.info(f"Site {domain} removed successfully")
        return final_backup

    def reconfigure_site(self, domain: str) -> RenderResult:
        """Regenerate a site's vhost from the current plan.

        Raises:
            SiteNotFoundError: Site not registered or its directory is missing
            ConfigurationError: nginx -t failed (previous vhost restored)
        """
        domain = self._validated_domain(domain)
        self.registry.find(domain)
        if not self.site_dir(domain).is_dir():
            raise SiteNotFoundError(domain)

        self.logger.info(f"Reconfiguring WordPress site: {domain}")
        result = self._enable_vhost(domain, self.plan())
        if result.changed:
            self.logger.info(f"Site {domain} reconfigured (backup: {result.backup_path})")
        else:
            self.logger.info(f"Site {domain} configuration already up to date")
        return result

    def reconfigure_all_sites(self) -> ReconfigureSummary:
        """Regenerate every registered vhost, continuing past failures."""
        summary = ReconfigureSummary()
        for record in self.registry.list_all():
            try:
                self.reconfigure_site(record.domain)
            except WPServerError as e:
                self.logger.error(f"Reconfiguration failed for {record.domain}: {e}")
                summary.failed[record.domain] = str(e)
            else:
                summary.succeeded.append(record.domain)

        self.logger.info(
            f"Reconfigured {len(summary.succeeded)}/{summary.total} sites, "
            f"{len(summary.failed)} failed"
        )
        return summary

    # ------------------------------------------------------------------
    # Backups and certificates
    # ------------------------------------------------------------------

    def backup_site(self, domain: str) -> BackupResult:
        domain = self._validated_domain(domain)
        return self.backups.backup_site(self.registry.find(domain))

    def backup_all_sites(self, cleanup: bool = True) -> Tuple[List[BackupResult], Dict[str, str]]:
        """Back up every registered site, then prune old backups.

        Returns:
            Successful backups and a domain to error mapping for failures
        """
        results, failures = [], {}
        for record in self.registry.list_all():
            try:
                results.append(self.backups.backup_site(record))
            except (WPServerError, OSError) as e:
                self.logger.error(f"Backup failed for {record.domain}: {e}")
                failures[record.domain] = str(e)

        self.logger.info(f"Backed up {len(results)} sites")
        if cleanup:
            self.backups.cleanup_old_backups(self.config.backup_retention_days)
        return results, failures

    def install_ssl(self, domain: str, email: str) -> CommandResult:
        """Issue a certificate for a registered site.

        Raises:
            InputValidationError: Invalid domain or empty email
            SiteNotFoundError: Domain not registered
        """
        domain = self._validated_domain(domain)
        is_valid, error = validate_email(email)
        if not is_valid:
            raise InputValidationError(error)
        self.registry.find(domain)
        return self.certificates.issue(domain, email)

    def list_backups(self) -> List[Path]:
        return self.backups.list_backups()

    def renew_ssl(self) -> CommandResult:
        return self.certificates.renew()

    def list_certificates(self) -> str:
        return self.certificates.list_certificates()

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def show_allocation(self, refresh: bool = False
                        ) -> Tuple[ResourceSnapshot, AllocationPlan, List[Tuple[str, str]]]:
        """Snapshot, plan and display rows for the current host.

        Args:
            refresh: Probe the host again instead of reusing this invocation's snapshot
        """
        if refresh:
            self._snapshot = None
            self._plan = None
        plan = self.plan()
        return self.snapshot(), plan, plan_summary(plan)

    def show_live_config(self) -> Tuple[Dict[str, Dict[str, str]], List[SettingDrift]]:
        """Deployed tunables and their drift from the current plan."""
        live = read_live_settings(self.config, self.php_version())
        return live, compare_with_plan(live, self.plan())

    def system_status(self) -> Dict[str, Any]:
        """Service states, resource usage and site count."""
        services: List[ServiceStatus] = [
            self.services.status(name)
            for name in ("nginx", self.php_fpm_service(), "mariadb", "redis-server")
        ]
        return {
            "hostname": socket.gethostname(),
            "snapshot": self.snapshot(),
            "usage": self.probe.usage(),
            "services": services,
            "sites": len(self.registry),
            "backups": len(self.backups.list_backups()),
        }

    def clear_caches(self) -> int:
        """Flush Redis and empty the nginx FastCGI cache.

        Returns:
            Number of cache entries removed from disk
        """
        self.services.run(["redis-cli", "FLUSHALL"])
        cache_dir = Path(self.config.get("nginx_cache_dir"))
        removed = 0
        if cache_dir.is_dir() and not self.config.dry_run:
            for entry in cache_dir.iterdir():
                if entry.is_dir() and not entry.is_symlink():
                    shutil.rmtree(entry)
                else:
                    entry.unlink()
                removed += 1
        self.logger.info(f"Caches cleared ({removed} nginx cache entries)")
        return removed

    def is_root(self) -> bool:
        return self.probe.is_root() or self.config.dry_run


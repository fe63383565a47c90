"""Test orchestrator workflows on a simulated host."""

import os
import stat
from unittest.mock import patch

import pytest

from conftest import completed, simulate_host
from wpserver.exceptions import (
    ConfigurationError, DuplicateDomainError, ExternalToolError, InputValidationError,
    PreconditionError, SiteExistsError, SiteNotFoundError,
)
from wpserver.models.data_models import ConfigTarget
from wpserver.orchestrator.commands import (
    COMMAND_SPECS, Command, CommandRequest, dispatch,
)
from wpserver.workers.certificates import CertificateClient
from wpserver.workers.probe import ResourceProbe


def commands(runner):
    return [call.args[0] for call in runner.call_args_list]


def sql_sent(runner):
    """All SQL fed to the mysql client."""
    return "".join(
        call.kwargs.get("input") or "" for call in runner.call_args_list
        if call.args[0][0] == "mysql"
    )


def failing_nginx_test(argv, **kwargs):
    if argv == ["nginx", "-t"]:
        return completed(returncode=1, stderr="nginx: [emerg] unexpected end of file")
    return simulate_host(argv, **kwargs)


def mode_of(path):
    return stat.S_IMODE(os.stat(path).st_mode)


class TestAddSite:
    """Test site provisioning."""

    def test_add_site(self, orchestrator, config, host_runner):
        """Test a new site gets database, files, vhost, registry entry and report."""
        result = orchestrator.add_site("Example.com")

        assert result.domain == "example.com"
        assert not result.wordpress_installed

        record = orchestrator.registry.find("example.com")
        assert record.database_name == result.database_name
        assert record.database_name.startswith("wp_")

        site_root = config.web_root / "example.com" / "public_html"
        assert (site_root / "wp-config.php").exists()
        assert mode_of(site_root / "wp-config.php") == 0o440
        assert (config.web_root / "example.com" / "logs").is_dir()

        available = config.nginx_site_available("example.com")
        enabled = config.nginx_site_enabled("example.com")
        assert "server_name example.com www.example.com;" in available.read_text()
        assert enabled.is_symlink()
        assert os.readlink(enabled) == str(available)

        assert f"CREATE DATABASE IF NOT EXISTS `{result.database_name}`" in sql_sent(host_runner)
        assert ["systemctl", "reload", "nginx"] in commands(host_runner)

        assert orchestrator.credentials.subjects() == ["example.com"]
        assert mode_of(result.report_path) == 0o600
        assert "Setup via browser" in result.report_path.read_text()

    def test_database_password_not_on_command_line(self, orchestrator, host_runner):
        orchestrator.add_site("example.com")

        passwords = [line.split(": ", 1)[1] for line in
                     orchestrator.credentials.path.read_text().splitlines()
                     if line.startswith("Database Password: ")]
        assert passwords
        for argv in commands(host_runner):
            assert all(passwords[0] not in arg for arg in argv)

    def test_duplicate_rejected_before_side_effects(self, orchestrator, config, host_runner):
        """Test a registered domain is refused before anything runs."""
        orchestrator.registry.add("example.com", "wp_abc", "wp_def")

        with pytest.raises(DuplicateDomainError):
            orchestrator.add_site("example.com")

        host_runner.assert_not_called()
        assert not (config.web_root / "example.com").exists()
        assert len(orchestrator.registry) == 1

    def test_invalid_domain(self, orchestrator, host_runner):
        with pytest.raises(InputValidationError):
            orchestrator.add_site("not a domain")

        host_runner.assert_not_called()

    def test_invalid_admin_email(self, orchestrator):
        with pytest.raises(InputValidationError):
            orchestrator.add_site("example.com", admin_email="nope")

    def test_leftover_directory_kept(self, orchestrator, config, host_runner):
        """Test declining the reset leaves the old directory untouched."""
        leftover = config.web_root / "example.com"
        leftover.mkdir(parents=True)
        (leftover / "keep.txt").write_text("data")

        with pytest.raises(SiteExistsError):
            orchestrator.add_site("example.com", reset=lambda path: False)

        assert (leftover / "keep.txt").exists()
        host_runner.assert_not_called()

    def test_leftover_directory_reset(self, orchestrator, config, host_runner):
        """Test accepting the reset drops the stale database found in wp-config.php."""
        public_html = config.web_root / "example.com" / "public_html"
        public_html.mkdir(parents=True)
        (public_html / "wp-config.php").write_text(
            "<?php\ndefine( 'DB_NAME', 'wp_stale' );\ndefine( 'DB_USER', 'wp_olduser' );\n"
        )
        (public_html / "keep.txt").write_text("data")
        asked = []

        def reset(path):
            asked.append(path)
            return True

        result = orchestrator.add_site("example.com", reset=reset)

        assert asked == [config.web_root / "example.com"]
        assert "DROP DATABASE IF EXISTS `wp_stale`;" in sql_sent(host_runner)
        assert "DROP USER IF EXISTS 'wp_olduser'@'localhost';" in sql_sent(host_runner)
        assert not (public_html / "keep.txt").exists()
        assert orchestrator.registry.find("example.com").database_name == result.database_name

    def test_vhost_rejected_by_nginx(self, orchestrator, config, host_runner):
        """Test a failing nginx -t removes the new vhost and leaves the site unregistered."""
        host_runner.side_effect = failing_nginx_test

        with pytest.raises(ConfigurationError):
            orchestrator.add_site("example.com")

        assert not config.nginx_site_available("example.com").exists()
        assert not config.nginx_site_enabled("example.com").is_symlink()
        assert "example.com" not in orchestrator.registry
        assert ["systemctl", "reload", "nginx"] not in commands(host_runner)

    def test_failed_download_drops_new_database(self, orchestrator, host_runner):
        """Test a site whose files cannot be unpacked leaves no database behind."""
        def failing_unpack(argv, **kwargs):
            if argv[0] == "tar" and "-xzf" in argv:
                return completed(returncode=2, stderr="gzip: stdin: not in gzip format")
            return simulate_host(argv, **kwargs)

        host_runner.side_effect = failing_unpack

        with patch("wpserver.orchestrator.main.generate_db_identifier",
                   side_effect=["wp_first01", "wp_user001"]):
            with pytest.raises(ExternalToolError):
                orchestrator.add_site("example.com")

        assert "DROP DATABASE IF EXISTS `wp_first01`;" in sql_sent(host_runner)
        assert "DROP USER IF EXISTS 'wp_user001'@'localhost';" in sql_sent(host_runner)
        assert "example.com" not in orchestrator.registry
        assert "example.com" not in orchestrator.credentials.subjects()

        host_runner.side_effect = simulate_host
        result = orchestrator.add_site("example.com", reset=lambda path: True)

        assert orchestrator.registry.find("example.com").database_name == result.database_name

    def test_auto_install_with_wpcli(self, orchestrator, host_runner):
        """Test the WordPress installer runs when wp-cli and an admin email are present."""
        with patch.object(type(orchestrator.wordpress), "has_wpcli", return_value=True), \
                patch.object(type(orchestrator.wordpress), "create_config"):
            result = orchestrator.add_site("example.com", admin_email="boss@example.com",
                                           admin_user="boss")

        assert result.wordpress_installed
        assert result.admin_user == "boss"
        wp_commands = [argv[1:3] for argv in commands(host_runner) if argv[0] == "wp"]
        assert ["core", "install"] in wp_commands
        assert ["plugin", "install"] in wp_commands
        assert "Already installed!" in result.report_path.read_text()


class TestSiteLifecycle:
    """Test removal, reconfiguration and backups of registered sites."""

    def test_remove_site(self, orchestrator, config, host_runner):
        """Test removal takes a final backup, then deletes everything."""
        created = orchestrator.add_site("example.com")

        backup = orchestrator.remove_site("example.com")

        assert backup.directory.exists()
        assert (backup.directory / "files.tar.gz").exists()
        assert not (config.web_root / "example.com").exists()
        assert not config.nginx_site_available("example.com").exists()
        assert not config.nginx_site_enabled("example.com").is_symlink()
        assert f"DROP DATABASE IF EXISTS `{created.database_name}`;" in sql_sent(host_runner)
        assert orchestrator.list_sites() == []

    def test_remove_site_without_backup(self, orchestrator, config):
        orchestrator.add_site("example.com")

        assert orchestrator.remove_site("example.com", backup=False) is None
        assert orchestrator.list_backups() == []

    def test_remove_unknown_site(self, orchestrator, host_runner):
        with pytest.raises(SiteNotFoundError):
            orchestrator.remove_site("example.com")

        host_runner.assert_not_called()

    def test_reconfigure_unchanged(self, orchestrator):
        orchestrator.add_site("example.com")

        result = orchestrator.reconfigure_site("example.com")

        assert not result.changed
        assert result.backup_path is None

    def test_reconfigure_with_new_plan(self, orchestrator, config, large_plan):
        """Test a new plan rewrites the vhost and backs up the old one."""
        orchestrator.add_site("example.com")
        orchestrator._plan = large_plan

        result = orchestrator.reconfigure_site("example.com")

        assert result.changed
        assert result.backup_path.exists()
        assert f"client_max_body_size {large_plan.upload_max};" in \
            config.nginx_site_available("example.com").read_text()

    def test_reconfigure_unregistered(self, orchestrator, config):
        """Test a directory alone does not make a site reconfigurable."""
        (config.web_root / "example.com").mkdir(parents=True)

        with pytest.raises(SiteNotFoundError):
            orchestrator.reconfigure_site("example.com")

    def test_reconfigure_all_continues_past_failures(self, orchestrator, config):
        orchestrator.registry.add("a.com", "wp_a", "wp_ua")
        orchestrator.registry.add("b.com", "wp_b", "wp_ub")
        (config.web_root / "a.com").mkdir(parents=True)

        summary = orchestrator.reconfigure_all_sites()

        assert summary.succeeded == ["a.com"]
        assert list(summary.failed) == ["b.com"]
        assert summary.total == 2
        assert config.nginx_site_available("a.com").exists()

    def test_backup_all_sites(self, orchestrator, config):
        """Test one broken site does not stop the others from being backed up."""
        orchestrator.registry.add("a.com", "wp_a", "wp_ua")
        orchestrator.registry.add("b.com", "wp_b", "wp_ub")
        (config.web_root / "a.com" / "public_html").mkdir(parents=True)

        results, failures = orchestrator.backup_all_sites()

        assert [r.domain for r in results] == ["a.com"]
        assert list(failures) == ["b.com"]
        assert len(orchestrator.list_backups()) == 1

    def test_backup_unregistered_site(self, orchestrator):
        with pytest.raises(SiteNotFoundError):
            orchestrator.backup_site("example.com")

    def test_install_ssl(self, orchestrator, host_runner):
        orchestrator.registry.add("example.com", "wp_a", "wp_ua")

        with patch.object(CertificateClient, "command_exists", return_value=True):
            result = orchestrator.install_ssl("example.com", "admin@example.com")

        assert result.ok
        assert commands(host_runner)[-1][:4] == ["certbot", "--nginx", "-d", "example.com"]

    def test_install_ssl_checks_input_first(self, orchestrator, host_runner):
        with pytest.raises(InputValidationError):
            orchestrator.install_ssl("example.com", "")
        with pytest.raises(SiteNotFoundError):
            orchestrator.install_ssl("example.com", "admin@example.com")

        host_runner.assert_not_called()


class TestServiceConfiguration:
    """Test tuning of the service configuration files."""

    def test_configure_services(self, orchestrator, config, host_runner):
        results = orchestrator.configure_services()

        assert {r.target for r in results} == {
            ConfigTarget.NGINX_MAIN, ConfigTarget.PHP_INI, ConfigTarget.PHP_FPM_POOL,
            ConfigTarget.MARIADB, ConfigTarget.REDIS,
        }
        assert all(r.changed for r in results)
        assert config.nginx_main_conf.exists()
        assert config.php_fpm_pool("8.2").exists()
        issued = commands(host_runner)
        assert ["nginx", "-t"] in issued
        assert ["php-fpm8.2", "-t"] in issued
        assert ["systemctl", "restart", "mariadb"] in issued

    def test_configure_services_is_idempotent(self, orchestrator, host_runner):
        """Test re-applying the same plan touches no file and restarts nothing."""
        orchestrator.configure_services()
        host_runner.reset_mock()

        results = orchestrator.configure_services()

        assert not any(r.changed for r in results)
        host_runner.assert_not_called()

    def test_invalid_nginx_conf_restored(self, orchestrator, config, host_runner):
        config.nginx_main_conf.parent.mkdir(parents=True)
        config.nginx_main_conf.write_text("# previous\n")
        host_runner.side_effect = failing_nginx_test

        with pytest.raises(ConfigurationError):
            orchestrator.configure_services()

        assert config.nginx_main_conf.read_text() == "# previous\n"
        assert ["systemctl", "reload", "nginx"] not in commands(host_runner)

    def test_failed_check_restores_whole_pass(self, orchestrator, config, host_runner, large_plan):
        """Test a rejected nginx.conf also puts back the other service files."""
        orchestrator.configure_services()
        previous = {
            path: path.read_text()
            for path in (config.mariadb_conf_file, config.redis_conf_file,
                         config.php_fpm_pool("8.2"), config.nginx_main_conf)
        }
        orchestrator._plan = large_plan
        host_runner.reset_mock()
        host_runner.side_effect = failing_nginx_test

        with pytest.raises(ConfigurationError):
            orchestrator.configure_services()

        for path, content in previous.items():
            assert path.read_text() == content
        assert not any(argv[0] == "systemctl" for argv in commands(host_runner))

    def test_live_config_matches_plan(self, orchestrator):
        orchestrator.configure_services()

        live, drift = orchestrator.show_live_config()

        assert drift == []
        assert live

    def test_secure_database_once(self, orchestrator, config, host_runner):
        """Test the root password is set once and kept in an owner-only file."""
        assert orchestrator.secure_database()
        client_config = config.get("mysql_client_config")
        assert mode_of(client_config) == 0o600
        assert "MariaDB Root Password" in orchestrator.credentials.subjects()

        assert not orchestrator.secure_database()
        assert sql_sent(host_runner).count("ALTER USER 'root'@'localhost'") == 1

    def test_setup_automation(self, orchestrator, config):
        orchestrator.setup_automation()

        cron = open(config.get("cron_file")).read()
        assert "0 2 * * * root " in cron
        assert "backup --all" in cron

    def test_clear_caches(self, orchestrator, config, host_runner):
        cache_dir = config.get("nginx_cache_dir")
        os.makedirs(os.path.join(cache_dir, "a", "b"))
        open(os.path.join(cache_dir, "entry"), "w").close()

        assert orchestrator.clear_caches() == 2
        assert os.listdir(cache_dir) == []
        assert ["redis-cli", "FLUSHALL"] in commands(host_runner)


class TestInstallation:
    """Test the full installation workflow."""

    @pytest.fixture
    def ubuntu(self, orchestrator, tmp_path):
        os_release = tmp_path / "os-release"
        os_release.write_text('NAME="Ubuntu"\nID=ubuntu\nVERSION_ID="22.04"\n')
        orchestrator.probe.os_release_path = os_release
        with patch.object(ResourceProbe, "command_exists", return_value=False):
            yield orchestrator

    def test_declined(self, ubuntu, host_runner):
        """Test declining the confirmation installs nothing."""
        assert ubuntu.run_installation(confirm=lambda question: False) is None

        assert not any(argv[0] == "apt-get" for argv in commands(host_runner))

    def test_full_installation(self, ubuntu, config, host_runner, small_plan):
        plan = ubuntu.run_installation(confirm=lambda question: True)

        assert plan == small_plan
        issued = commands(host_runner)
        assert ["apt-get", "install", "-y", "-qq", "nginx"] in issued
        assert ["systemctl", "enable", "redis-server"] in issued
        assert ["ufw", "--force", "enable"] in issued
        assert config.nginx_main_conf.exists()
        assert os.path.exists(config.get("cron_file"))
        assert os.path.exists(config.get("mysql_client_config"))

    def test_preflight_without_network(self, ubuntu, host_runner):
        host_runner.side_effect = lambda argv, **kwargs: completed(
            returncode=1 if argv[0] == "ping" else 0
        )

        with pytest.raises(PreconditionError, match="No internet"):
            ubuntu.run_installation()

    def test_preflight_low_disk(self, ubuntu, config):
        config.set("min_disk_gb", 100)

        with pytest.raises(PreconditionError, match="disk space"):
            ubuntu.run_installation()


class TestDispatch:
    """Test command preconditions."""

    @pytest.fixture
    def not_root(self, orchestrator, monkeypatch):
        monkeypatch.setattr(orchestrator.probe, "is_root", lambda: False)
        return orchestrator

    def test_every_command_declared(self):
        assert set(COMMAND_SPECS) == set(Command)

    def test_domain_checked_before_root(self, not_root):
        with pytest.raises(InputValidationError):
            dispatch(not_root, CommandRequest(command=Command.ADD_SITE, domain="bad domain"))
        with pytest.raises(InputValidationError):
            dispatch(not_root, CommandRequest(command=Command.REMOVE_SITE))

    def test_root_required(self, not_root, host_runner):
        with pytest.raises(PreconditionError, match="root"):
            dispatch(not_root, CommandRequest(command=Command.ADD_SITE, domain="example.com"))

        host_runner.assert_not_called()

    def test_read_only_commands_need_no_root(self, not_root):
        not_root.registry.add("example.com", "wp_a", "wp_ua")

        sites = dispatch(not_root, CommandRequest(command=Command.LIST_SITES))

        assert [s.domain for s in sites] == ["example.com"]

    def test_dry_run_bypasses_root(self, not_root, config):
        """Test dry-run lets privileged commands through to their own checks."""
        config.set("dry_run", True)

        with pytest.raises(SiteNotFoundError):
            dispatch(not_root, CommandRequest(command=Command.REMOVE_SITE, domain="example.com"))

    def test_dispatch_passes_options(self, orchestrator, monkeypatch):
        monkeypatch.setattr(orchestrator.probe, "is_root", lambda: True)
        orchestrator.registry.add("example.com", "wp_a", "wp_ua")
        (orchestrator.site_dir("example.com") / "public_html").mkdir(parents=True)

        result = dispatch(orchestrator, CommandRequest(
            command=Command.REMOVE_SITE, domain="example.com", options={"backup": False},
        ))

        assert result is None
        assert orchestrator.list_backups() == []

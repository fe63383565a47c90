"""Test configuration rendering."""

import pytest

from wpserver.analysis.allocation import compute_allocation
from wpserver.models.data_models import ConfigTarget
from wpserver.rendering.renderer import ConfigRenderer, backup_file

SITE_CONTEXT = dict(
    domain="example.com",
    site_root="/var/www/example.com/public_html",
    log_dir="/var/www/example.com/logs",
    php_socket="/run/php/php8.2-fpm.sock",
)


@pytest.fixture
def renderer():
    return ConfigRenderer()


class TestRender:
    """Test pure rendering."""

    def test_nginx_main(self, renderer, small_plan):
        text = renderer.render(ConfigTarget.NGINX_MAIN, small_plan, cache_dir="/var/cache/nginx")

        assert "worker_processes 2;" in text
        assert "client_max_body_size 64M;" in text
        assert "fastcgi_cache_path /var/cache/nginx " in text

    def test_site_vhost(self, renderer, small_plan):
        text = renderer.render(ConfigTarget.NGINX_SITE, small_plan, **SITE_CONTEXT)

        assert "server_name example.com www.example.com;" in text
        assert "root /var/www/example.com/public_html;" in text
        assert "fastcgi_pass unix:/run/php/php8.2-fpm.sock;" in text
        assert "client_max_body_size 64M;" in text

    def test_php_files(self, renderer, large_plan):
        ini = renderer.render(ConfigTarget.PHP_INI, large_plan)
        pool = renderer.render(ConfigTarget.PHP_FPM_POOL, large_plan,
                               php_socket="/run/php/php8.2-fpm.sock")

        assert "memory_limit = 512M" in ini
        assert "post_max_size = 520M" in ini
        assert "pm.max_children = 60" in pool
        assert "pm.start_servers = 12" in pool
        assert "listen = /run/php/php8.2-fpm.sock" in pool

    def test_database_and_cache(self, renderer, large_plan):
        mariadb = renderer.render(ConfigTarget.MARIADB, large_plan)
        redis = renderer.render(ConfigTarget.REDIS, large_plan)

        assert "innodb_buffer_pool_size = 3686M" in mariadb
        assert "innodb_log_file_size = 921M" in mariadb
        assert "max_connections = 110" in mariadb
        assert "maxmemory 512mb" in redis
        assert "maxmemory-policy allkeys-lru" in redis

    def test_missing_context(self, renderer, small_plan):
        with pytest.raises(ValueError, match="domain"):
            renderer.render(ConfigTarget.NGINX_SITE, small_plan, php_socket="/run/php.sock")

    def test_identical_plans_render_identically(self, renderer, small_snapshot):
        """Test output carries no timestamps or other run-specific text."""
        first = renderer.render(ConfigTarget.MARIADB, compute_allocation(small_snapshot))
        second = renderer.render(ConfigTarget.MARIADB, compute_allocation(small_snapshot))

        assert first == second


class TestWrite:
    """Test writing, backup and restore."""

    def test_new_file(self, renderer, small_plan, tmp_path):
        path = tmp_path / "redis" / "redis.conf"

        result = renderer.write(ConfigTarget.REDIS, small_plan, path)

        assert result.changed
        assert result.backup_path is None
        assert path.read_text() == renderer.render(ConfigTarget.REDIS, small_plan)

    def test_rewrite_same_plan_is_noop(self, renderer, small_plan, tmp_path):
        """Test re-applying the same plan writes nothing and makes no backup."""
        path = tmp_path / "redis.conf"
        renderer.write(ConfigTarget.REDIS, small_plan, path)

        result = renderer.write(ConfigTarget.REDIS, small_plan, path)

        assert not result.changed
        assert sorted(p.name for p in tmp_path.iterdir()) == ["redis.conf"]

    def test_changed_file_is_backed_up(self, renderer, small_plan, large_plan, tmp_path):
        path = tmp_path / "redis.conf"
        renderer.write(ConfigTarget.REDIS, small_plan, path)
        old = path.read_text()

        result = renderer.write(ConfigTarget.REDIS, large_plan, path)

        assert result.changed
        assert result.backup_path.name.startswith("redis.conf.backup.")
        assert result.backup_path.read_text() == old
        assert "maxmemory 512mb" in path.read_text()

    def test_restore_puts_backup_back(self, renderer, small_plan, large_plan, tmp_path):
        path = tmp_path / "redis.conf"
        renderer.write(ConfigTarget.REDIS, small_plan, path)
        old = path.read_text()
        result = renderer.write(ConfigTarget.REDIS, large_plan, path)

        assert renderer.restore(result)
        assert path.read_text() == old

    def test_restore_removes_new_file(self, renderer, small_plan, tmp_path):
        """Test undoing the first write of a file deletes it."""
        path = tmp_path / "redis.conf"
        result = renderer.write(ConfigTarget.REDIS, small_plan, path)

        assert renderer.restore(result)
        assert not path.exists()

    def test_restore_unchanged_is_noop(self, renderer, small_plan, tmp_path):
        path = tmp_path / "redis.conf"
        renderer.write(ConfigTarget.REDIS, small_plan, path)
        result = renderer.write(ConfigTarget.REDIS, small_plan, path)

        assert not renderer.restore(result)
        assert path.exists()


class TestBackupFile:
    """Test timestamped backups."""

    def test_missing_file(self, tmp_path):
        assert backup_file(tmp_path / "missing.conf") is None

    def test_same_second_backups_do_not_collide(self, tmp_path):
        path = tmp_path / "nginx.conf"
        path.write_text("one")

        first = backup_file(path)
        path.write_text("two")
        second = backup_file(path)

        assert first != second
        assert first.read_text() == "one"
        assert second.read_text() == "two"


class TestReportTemplate:
    """Test the installation report template."""

    def _values(self, **overrides):
        values = dict(
            created="2024-01-02 03:04:05", hostname="web1", domain="example.com",
            site_title=None, site_root="/var/www/example.com/public_html",
            log_dir="/var/www/example.com/logs", ssl_dir="/var/www/example.com/ssl",
            db_name="wp_abc", db_user="wp_def", db_password="dbpass",
            admin_user=None, admin_password="adminpass", admin_email=None,
            nginx_available="/etc/nginx/sites-available/example.com",
            nginx_enabled="/etc/nginx/sites-enabled/example.com",
            php_version="8.2", php_socket="/run/php/php8.2-fpm.sock",
            wordpress_version=None, wordpress_installed=False,
            report_path="/opt/wpserver/logs/site-example.com.txt",
            credentials_file="/root/.wpserver-credentials", backup_dir="/opt/wpserver/backups",
        )
        values.update(overrides)
        return values

    def test_browser_setup_report(self, renderer):
        text = renderer.render_template("site-report.txt.j2", **self._values())

        assert "Database Password:   dbpass" in text
        assert "Admin Username:      Setup via browser" in text
        assert "Complete the WordPress installation wizard" in text

    def test_installed_report(self, renderer):
        text = renderer.render_template("site-report.txt.j2", **self._values(
            wordpress_installed=True, admin_user="boss", admin_email="boss@example.com",
            site_title="Blog", wordpress_version="6.5",
        ))

        assert "Already installed! Visit: http://example.com/wp-admin" in text
        assert "WordPress Version:   6.5" in text


class TestDryRun:
    """Test the renderer in dry-run mode."""

    def test_nothing_written(self, small_plan, tmp_path):
        path = tmp_path / "redis.conf"

        result = ConfigRenderer(dry_run=True).write(ConfigTarget.REDIS, small_plan, path)

        assert not result.changed
        assert not path.exists()

    def test_existing_file_untouched(self, small_plan, tmp_path):
        path = tmp_path / "redis.conf"
        path.write_text("maxmemory 1gb\n")

        ConfigRenderer(dry_run=True).write(ConfigTarget.REDIS, small_plan, path)

        assert path.read_text() == "maxmemory 1gb\n"
        assert [p.name for p in tmp_path.iterdir()] == ["redis.conf"]

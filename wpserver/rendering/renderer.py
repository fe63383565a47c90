"""Configuration renderer: allocation plan to service configuration files."""

import shutil
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from ..models.data_models import AllocationPlan, ConfigTarget, RenderResult
from ..stores.files import atomic_write
from ..utils.logging import get_logger

TEMPLATE_DIR = Path(__file__).parent / "templates"
BACKUP_SUFFIX_FORMAT = ".backup.%Y%m%d_%H%M%S"

TEMPLATES: Dict[ConfigTarget, str] = {
    ConfigTarget.NGINX_MAIN: "nginx.conf.j2",
    ConfigTarget.NGINX_SITE: "wordpress-site.conf.j2",
    ConfigTarget.PHP_INI: "php.ini.j2",
    ConfigTarget.PHP_FPM_POOL: "www.conf.j2",
    ConfigTarget.MARIADB: "mariadb.cnf.j2",
    ConfigTarget.REDIS: "redis.conf.j2",
}

# Context keys each target needs beyond the plan itself
REQUIRED_CONTEXT: Dict[ConfigTarget, Tuple[str, ...]] = {
    ConfigTarget.NGINX_MAIN: ("cache_dir",),
    ConfigTarget.NGINX_SITE: ("domain", "site_root", "log_dir", "php_socket"),
    ConfigTarget.PHP_INI: (),
    ConfigTarget.PHP_FPM_POOL: ("php_socket",),
    ConfigTarget.MARIADB: (),
    ConfigTarget.REDIS: (),
}


def backup_file(path: Union[str, Path]) -> Optional[Path]:
    """Copy a file to ``<path>.backup.YYYYmmdd_HHMMSS``.

    Args:
        path: File to back up

    Returns:
        Backup path, or None when the file does not exist
    """
    path = Path(path)
    if not path.exists():
        return None

    backup = path.with_name(path.name + datetime.now().strftime(BACKUP_SUFFIX_FORMAT))
    counter = 1
    while backup.exists():
        backup = path.with_name(
            path.name + datetime.now().strftime(BACKUP_SUFFIX_FORMAT) + f".{counter}"
        )
        counter += 1

    shutil.copy2(path, backup)
    return backup


class ConfigRenderer:
    """Renders and writes the generated configuration files."""

    def __init__(self, template_dir: Optional[Union[str, Path]] = None, dry_run: bool = False):
        """Initialize renderer.

        Args:
            template_dir: Directory holding the jinja2 templates
            dry_run: Log what would be written instead of writing
        """
        self.logger = get_logger("renderer")
        self.dry_run = dry_run
        self.env = Environment(
            loader=FileSystemLoader(str(template_dir or TEMPLATE_DIR)),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
            autoescape=False,
        )

    def render(self, target: ConfigTarget, plan: AllocationPlan, **context: Any) -> str:
        """Render a target to text without touching the filesystem.

        Args:
            target: Which configuration file to render
            plan: Allocation plan supplying the tunables
            **context: Extra template values (domain, php_socket, ...)

        Returns:
            Rendered file content
        """
        target = ConfigTarget(target)
        missing = [key for key in REQUIRED_CONTEXT[target] if key not in context]
        if missing:
            raise ValueError(f"Missing template context for {target.value}: {', '.join(missing)}")

        return self.render_template(TEMPLATES[target], plan=plan, **context)

    def render_template(self, name: str, **context: Any) -> str:
        """Render any shipped template by file name."""
        values = {key: str(value) if isinstance(value, Path) else value
                  for key, value in context.items()}
        return self.env.get_template(name).render(**values)

    def write(self, target: ConfigTarget, plan: AllocationPlan,
              path: Union[str, Path], **context: Any) -> RenderResult:
        """Render a target and install it at ``path``.

        An existing file with different content is backed up first. Identical
        content is left alone: no write, no backup.

        Args:
            target: Which configuration file to render
            plan: Allocation plan supplying the tunables
            path: Destination file
            **context: Extra template values

        Returns:
            What was written and where the previous version went
        """
        target = ConfigTarget(target)
        path = Path(path)
        content = self.render(target, plan, **context)

        if path.exists() and path.read_text(encoding="utf-8") == content:
            self.logger.debug(f"{target.value} unchanged: {path}")
            return RenderResult(target=target, path=path, changed=False)

        if self.dry_run:
            self.logger.info(f"[dry-run] would write {target.value} configuration to {path}")
            return RenderResult(target=target, path=path, changed=False)

        backup = backup_file(path)
        if backup:
            self.logger.info(f"Backed up {path} to {backup}")

        atomic_write(path, content)
        self.logger.info(f"Wrote {target.value} configuration to {path}")
        return RenderResult(target=target, path=path, changed=True, backup_path=backup)

    def restore(self, result: RenderResult) -> bool:
        """Undo a write.

        Puts the backup back in place; a file that did not exist before the
        write is removed instead.

        Returns:
            True if anything was restored or removed
        """
        if not result.changed:
            return False

        if result.backup_path and result.backup_path.exists():
            atomic_write(result.path, result.backup_path.read_text(encoding="utf-8"))
            self.logger.warning(f"Restored {result.path} from {result.backup_path}")
            return True

        if result.backup_path is None and result.path.exists():
            result.path.unlink()
            self.logger.warning(f"Removed newly written {result.path}")
            return True

        return False

"""Site registry backed by a human-editable delimited text file."""

from pathlib import Path
from typing import Iterator, List, Optional, Tuple, Union

from ..exceptions import DuplicateDomainError, InputValidationError, SiteNotFoundError
from ..models.data_models import SiteRecord
from ..utils.logging import get_logger
from ..utils.validation import validate_domain
from .files import atomic_write, exclusive_lock

REGISTRY_HEADER = [
    "# WordPress Sites Registry",
    "# Format: domain|database|user|created",
]


class SiteRegistry:
    """Registry of provisioned sites.

    Each mutation re-reads the whole file under an exclusive lock, applies the
    change and atomically replaces the file. Comment lines and lines that do
    not parse are kept verbatim on rewrite so hand edits survive.
    """

    def __init__(self, path: Union[str, Path]):
        """Initialize registry.

        Args:
            path: Registry file path
        """
        self.path = Path(path)
        self.logger = get_logger("registry")

    def _read_lines(self) -> List[str]:
        if not self.path.exists():
            return []
        return self.path.read_text(encoding="utf-8").splitlines()

    def _parse(self, line: str) -> Optional[SiteRecord]:
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            return None
        try:
            return SiteRecord.from_line(stripped)
        except ValueError as e:
            self.logger.warning(f"Skipping malformed registry line {stripped!r}: {e}")
            return None

    def _entries(self) -> List[Tuple[str, Optional[SiteRecord]]]:
        return [(line, self._parse(line)) for line in self._read_lines()]

    def _write_lines(self, lines: List[str]):
        if not lines or not lines[0].startswith("#"):
            lines = REGISTRY_HEADER + lines
        atomic_write(self.path, "\n".join(lines) + "\n")

    @staticmethod
    def _normalize(domain: str) -> str:
        return domain.strip().lower() if domain else ""

    def add(self, domain: str, database_name: str, database_user: str) -> SiteRecord:
        """Register a new site.

        Args:
            domain: Site domain
            database_name: Generated database name
            database_user: Generated database user

        Returns:
            The stored record

        Raises:
            InputValidationError: Domain is not a valid DNS name
            DuplicateDomainError: Domain already registered
        """
        is_valid, error = validate_domain(domain)
        if not is_valid:
            raise InputValidationError(error)

        record = SiteRecord(
            domain=domain,
            database_name=database_name,
            database_user=database_user,
        )

        with exclusive_lock(self.path):
            entries = self._entries()
            if any(r is not None and r.domain == record.domain for _, r in entries):
                raise DuplicateDomainError(record.domain)

            lines = [line for line, _ in entries]
            lines.append(record.to_line())
            self._write_lines(lines)

        self.logger.info(f"Site registered: {record.domain} (database {database_name})")
        return record

    def find(self, domain: str) -> SiteRecord:
        """Look up a site by exact domain.

        Raises:
            SiteNotFoundError: Domain not registered
        """
        wanted = self._normalize(domain)
        for _, record in self._entries():
            if record is not None and record.domain == wanted:
                return record
        raise SiteNotFoundError(wanted or domain)

    def exists(self, domain: str) -> bool:
        try:
            self.find(domain)
        except SiteNotFoundError:
            return False
        return True

    def remove(self, domain: str) -> SiteRecord:
        """Delete a site's record by exact domain.

        Returns:
            The removed record

        Raises:
            SiteNotFoundError: Domain not registered
        """
        wanted = self._normalize(domain)

        with exclusive_lock(self.path):
            entries = self._entries()
            removed = [r for _, r in entries if r is not None and r.domain == wanted]
            if not removed:
                raise SiteNotFoundError(wanted or domain)

            kept = [line for line, r in entries if r is None or r.domain != wanted]
            self._write_lines(kept)

        self.logger.info(f"Site removed from registry: {wanted}")
        return removed[0]

    def list_all(self) -> List[SiteRecord]:
        """All registered sites in insertion order."""
        return [record for _, record in self._entries() if record is not None]

    def __iter__(self) -> Iterator[SiteRecord]:
        return iter(self.list_all())

    def __len__(self) -> int:
        return len(self.list_all())

    def __contains__(self, domain: str) -> bool:
        return self.exists(domain)

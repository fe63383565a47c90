"""Append-only, owner-only credential log."""

import os
from pathlib import Path
from typing import List, Mapping, Union

from ..models.data_models import CredentialEntry
from ..utils.logging import get_logger
from .files import exclusive_lock

OWNER_ONLY = 0o600


class CredentialStore:
    """Plaintext audit trail of generated secrets.

    Confidentiality rests on file permissions alone: the file is created with
    mode 0600 and the mode is re-asserted after every append.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.logger = get_logger("credentials")

    def append(self, subject: str, fields: Mapping[str, str]) -> CredentialEntry:
        """Append one credential block.

        Args:
            subject: Domain or system secret name
            fields: Ordered label to secret mapping

        Returns:
            The written entry
        """
        entry = CredentialEntry(
            subject=subject,
            fields={str(label): str(value) for label, value in fields.items()},
        )
        block = entry.render().encode("utf-8")

        self.path.parent.mkdir(parents=True, exist_ok=True)
        with exclusive_lock(self.path):
            fd = os.open(
                str(self.path),
                os.O_WRONLY | os.O_CREAT | os.O_APPEND,
                OWNER_ONLY,
            )
            try:
                os.write(fd, block)
                os.fsync(fd)
            finally:
                os.close(fd)
            os.chmod(self.path, OWNER_ONLY)

        self.logger.info(f"Credentials recorded for {subject} in {self.path}")
        return entry

    def subjects(self) -> List[str]:
        """Subjects of all entries, oldest first (values are never returned)."""
        if not self.path.exists():
            return []
        return [
            line[3:].strip()
            for line in self.path.read_text(encoding="utf-8").splitlines()
            if line.startswith("## ")
        ]

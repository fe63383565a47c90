"""Let's Encrypt certificates through certbot."""

from typing import Optional

from ..exceptions import InputValidationError, PreconditionError
from ..models.data_models import CommandResult
from ..utils.validation import validate_domain, validate_email
from .base import BaseWorker, Runner


class CertificateClient(BaseWorker):
    """Issues and renews certificates with the certbot nginx plugin."""

    def __init__(self, runner: Optional[Runner] = None, dry_run: bool = False):
        super().__init__(runner=runner, dry_run=dry_run, name="certificates")

    def _require_certbot(self):
        if not self.dry_run and not self.command_exists("certbot"):
            raise PreconditionError("Certbot not installed")

    def issue(self, domain: str, email: str) -> CommandResult:
        """Obtain a certificate for a domain and its ``www.`` alias.

        Certbot rewrites the vhost to redirect HTTP to HTTPS.

        Raises:
            InputValidationError: Invalid domain or missing email
            PreconditionError: certbot is not installed
            ExternalToolError: certbot failed (DNS not pointing here, rate limits)
        """
        for is_valid, error in (validate_domain(domain), validate_email(email)):
            if not is_valid:
                raise InputValidationError(error)
        self._require_certbot()

        self.logger.info(f"Obtaining SSL certificate for {domain}")
        result = self.run([
            "certbot", "--nginx",
            "-d", domain,
            "-d", f"www.{domain}",
            "--non-interactive",
            "--agree-tos",
            "--email", email.strip(),
            "--redirect",
        ])
        self.logger.info(f"SSL certificate installed for {domain}")
        return result

    def renew(self) -> CommandResult:
        self._require_certbot()
        result = self.run(["certbot", "renew", "--quiet"])
        self.logger.info("Certificates renewed")
        return result

    def list_certificates(self) -> str:
        """Raw ``certbot certificates`` listing."""
        self._require_certbot()
        return self.run(["certbot", "certificates"]).stdout

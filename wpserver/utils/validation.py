"""Validation utilities."""

import re
from typing import Optional

DOMAIN_PATTERN = re.compile(
    r"^([a-zA-Z0-9]([-a-zA-Z0-9]{0,61}[a-zA-Z0-9])?\.)+[a-zA-Z]{2,}$"
)
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

MIN_RAM_MB = 512
LOW_RAM_MB = 1024
SUPPORTED_UBUNTU_VERSIONS = ("20.04", "22.04", "24.04")


def validate_domain(domain: Optional[str]) -> tuple[bool, Optional[str]]:
    """Validate a site domain name.
    
    Args:
        domain: Domain as typed by the operator
        
    Returns:
        Tuple of (is_valid, error_message)
    """
    if not domain or not domain.strip():
        return False, "Domain name is required"
    
    domain = domain.strip()
    if len(domain) > 253:
        return False, "Domain name is longer than 253 characters"
    
    if not DOMAIN_PATTERN.match(domain):
        return False, f"Invalid domain name: {domain}"
    
    return True, None


def validate_email(email: Optional[str]) -> tuple[bool, Optional[str]]:
    """Validate a contact email address (certificate notifications, WP admin)."""
    if not email or not email.strip():
        return False, "Email address is required"
    
    if not EMAIL_PATTERN.match(email.strip()):
        return False, f"Invalid email address: {email}"
    
    return True, None


def is_supported_os(os_id: str, version: str) -> bool:
    return os_id == "ubuntu" and version in SUPPORTED_UBUNTU_VERSIONS

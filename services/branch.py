import re
import logging
from typing import Dict, Optional
from config import settings

logger = logging.getLogger("branch")

KNOWN_BRANCHES = {
    'koblenz': 'Koblenz',
    'dortmund': 'Dortmund',
    'berlin': 'Berlin',
}

DEFAULT_BRANCH = {
    'slug': 'dev',
    'name': 'Development',
    'title': 'AYLUX Aufmaß System',
}

def branch_pattern(domain: Optional[str] = None) -> re.Pattern:
    domain = domain or settings.BRANCH_DOMAIN
    return re.compile(rf"^([a-z0-9-]+)\.{re.escape(domain)}$", re.IGNORECASE)

def detect_branch(host: Optional[str], domain: Optional[str] = None) -> Dict[str, str]:
    """
    Derive the branch from a hostname of the form {slug}.cnsform.com.
    Unknown slugs get a capitalized name; anything else is the dev branch.
    """
    if not host:
        return dict(DEFAULT_BRANCH)
    hostname = host.split(":", 1)[0].strip()
    match = branch_pattern(domain).match(hostname)
    if not match:
        logger.debug(f"Host {hostname} does not match branch pattern, using default")
        return dict(DEFAULT_BRANCH)
    slug = match.group(1).lower()
    name = KNOWN_BRANCHES.get(slug, slug.capitalize())
    return {
        'slug': slug,
        'name': name,
        'title': f"AYLUX {name} - Aufmaß System",
    }

"""Domain extraction from email addresses and website URLs."""
import re
from typing import Iterable, List, Optional
from urllib.parse import urlparse


def _strip_www(host: str) -> str:
    return host[4:] if host.startswith("www.") else host


def email_domain(email: Optional[str]) -> Optional[str]:
    if email and "@" in email:
        domain = email.split("@", 1)[1].strip().lower()
        return domain or None
    return None


def url_domain(url: Optional[str]) -> Optional[str]:
    """Hostname of a website, lower-cased, without ``www.``; scheme optional."""
    if not url or not url.strip():
        return None
    url = url.strip()
    if not url.lower().startswith("http"):
        url = f"https://{url}"
    try:
        host = urlparse(url).hostname
    except ValueError:
        host = None
    if host:
        return _strip_www(host.lower())
    # Malformed URL: take everything up to the first path or query separator
    cleaned = re.sub(r"^(https?://)?(www\.)?", "", url.lower())
    host = re.split(r"[/?#]", cleaned, maxsplit=1)[0].strip()
    return host or None


def domains_match(domain1: Optional[str], domain2: Optional[str]) -> bool:
    if not domain1 or not domain2:
        return False
    return _strip_www(domain1.lower()) == _strip_www(domain2.lower())


def domains_from_contacts(contacts: Iterable) -> List[str]:
    """
    Unique domains from email and website contacts, in first-seen order.
    Each contact needs ``type`` and ``value`` attributes.
    """
    domains: List[str] = []
    for contact in contacts:
        if contact.type == "email":
            domain = email_domain(contact.value)
        elif contact.type == "website":
            domain = url_domain(contact.value)
        else:
            continue
        if domain and domain not in domains:
            domains.append(domain)
    return domains

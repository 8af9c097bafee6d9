"""Cookie classification and consent requirements.

Cookies are supplied by the caller (a scanner or the storefront); nothing here
inspects a live website. Categorization uses an ordered table of name
patterns, then falls back to the cookie domain.
"""

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any
from urllib.parse import urlparse

from merchant_compliance_engine.core.enums import (
    CookieCategory,
    CookieConsentStatus,
    CookieSource,
    Severity,
)

CONSENT_DURATION_DAYS = 365
THIRD_PARTY_MAX_LIFETIME = timedelta(days=365)

# Order matters: the first category with a matching pattern wins
COOKIE_PATTERNS: tuple[tuple[CookieCategory, tuple[re.Pattern[str], ...]], ...] = (
    (
        CookieCategory.ESSENTIAL,
        (
            re.compile(r"^(session|sess|phpsessid|jsessionid|asp\.net_sessionid)", re.IGNORECASE),
            re.compile(r"^(csrf|xsrf|security)", re.IGNORECASE),
            re.compile(r"^(auth|login|user)", re.IGNORECASE),
            re.compile(r"^(cart|basket|checkout)", re.IGNORECASE),
        ),
    ),
    (
        CookieCategory.ANALYTICS,
        (
            re.compile(r"^(_ga|_gid|_gat|__utm)", re.IGNORECASE),
            re.compile(r"^(analytics|tracking|stats)", re.IGNORECASE),
            re.compile(r"^(_hjid|_hjIncludedInSample)", re.IGNORECASE),
            re.compile(r"^(mixpanel|amplitude)", re.IGNORECASE),
        ),
    ),
    (
        CookieCategory.MARKETING,
        (
            re.compile(r"^(_fbp|_fbc|fr)", re.IGNORECASE),
            re.compile(r"^(ads|adnxs|doubleclick)", re.IGNORECASE),
            re.compile(r"^(marketing|campaign)", re.IGNORECASE),
            re.compile(r"^(mailchimp|klaviyo)", re.IGNORECASE),
        ),
    ),
    (
        CookieCategory.SOCIAL_MEDIA,
        (
            re.compile(r"^(twitter|linkedin|instagram)", re.IGNORECASE),
            re.compile(r"^(social|share|like)", re.IGNORECASE),
            re.compile(r"^(youtube|vimeo)", re.IGNORECASE),
        ),
    ),
    (
        CookieCategory.ADVERTISING,
        (
            re.compile(r"^(google_ads|adsystem)", re.IGNORECASE),
            re.compile(r"^(criteo|outbrain|taboola)", re.IGNORECASE),
            re.compile(r"^(retargeting|remarketing)", re.IGNORECASE),
        ),
    ),
    (
        CookieCategory.FUNCTIONAL,
        (
            re.compile(r"^(preferences|settings|config)", re.IGNORECASE),
            re.compile(r"^(language|locale|timezone)", re.IGNORECASE),
            re.compile(r"^(theme|layout)", re.IGNORECASE),
        ),
    ),
)

_DOMAIN_FALLBACKS: tuple[tuple[CookieCategory, tuple[str, ...]], ...] = (
    (CookieCategory.ANALYTICS, ("google", "analytics")),
    (CookieCategory.SOCIAL_MEDIA, ("facebook", "twitter")),
    (CookieCategory.ADVERTISING, ("ads", "doubleclick")),
)

CATEGORY_PURPOSES: dict[CookieCategory, str] = {
    CookieCategory.ESSENTIAL: "Essential website functionality",
    CookieCategory.FUNCTIONAL: "Enhanced user experience",
    CookieCategory.ANALYTICS: "Website analytics and performance",
    CookieCategory.MARKETING: "Marketing and advertising",
    CookieCategory.SOCIAL_MEDIA: "Social media integration",
    CookieCategory.ADVERTISING: "Targeted advertising",
    CookieCategory.PERSONALIZATION: "Content personalization",
}

CATEGORY_DESCRIPTIONS: dict[CookieCategory, str] = {
    CookieCategory.ESSENTIAL: "Necessary for the website to function properly",
    CookieCategory.FUNCTIONAL: "Enable enhanced functionality and personalization",
    CookieCategory.ANALYTICS: "Help us understand how visitors use our website",
    CookieCategory.MARKETING: "Used to deliver relevant advertisements",
    CookieCategory.SOCIAL_MEDIA: "Enable social media features and sharing",
    CookieCategory.ADVERTISING: "Used for targeted advertising and remarketing",
    CookieCategory.PERSONALIZATION: "Personalize content and user experience",
}


@dataclass(frozen=True)
class CookieObservation:
    """A cookie as observed on the merchant's storefront."""

    name: str
    domain: str
    value: str | None = None
    path: str = "/"
    expires: datetime | None = None
    http_only: bool = False
    secure: bool = False
    same_site: str | None = None


@dataclass(frozen=True)
class CookieIssue:
    severity: Severity
    description: str
    recommendation: str

    def to_dict(self) -> dict[str, str]:
        return {
            "severity": str(self.severity),
            "description": self.description,
            "recommendation": self.recommendation,
        }


@dataclass(frozen=True)
class ConsentRequirements:
    requires_banner: bool
    opt_in_required: bool
    categories: tuple[CookieCategory, ...] = ()


@dataclass
class CookieScanResult:
    total_cookies: int = 0
    categorized_cookies: dict[str, int] = field(
        default_factory=lambda: {str(category): 0 for category in CookieCategory}
    )
    third_party_cookies: int = 0
    compliance_issues: list[CookieIssue] = field(default_factory=list)
    consent_requirements: ConsentRequirements | None = None


def categorize_cookie(name: str, domain: str) -> CookieCategory:
    for category, patterns in COOKIE_PATTERNS:
        if any(pattern.search(name) for pattern in patterns):
            return category
    for category, keywords in _DOMAIN_FALLBACKS:
        if any(keyword in domain for keyword in keywords):
            return category
    return CookieCategory.FUNCTIONAL


def cookie_source(domain: str, site_url: str) -> CookieSource:
    """First-party when the cookie domain is the site host or its dotted form."""
    host = urlparse(site_url).hostname or site_url
    if domain in (host, f".{host}"):
        return CookieSource.FIRST_PARTY
    return CookieSource.THIRD_PARTY


def consent_status(category: CookieCategory) -> CookieConsentStatus:
    match category:
        case CookieCategory.ESSENTIAL:
            return CookieConsentStatus.EXEMPT
        case CookieCategory.FUNCTIONAL:
            return CookieConsentStatus.OPTIONAL
        case _:
            return CookieConsentStatus.REQUIRED


def cookie_description(name: str, category: CookieCategory) -> str:
    if name.startswith("_ga"):
        return "Google Analytics cookie for tracking website usage"
    if "session" in name:
        return "Session cookie for maintaining user state"
    if name.startswith("_fb"):
        return "Facebook pixel cookie for advertising"
    return f"{category} cookie"


def cookie_metadata(name: str, domain: str) -> dict[str, Any]:
    if name.startswith("_ga"):
        return {
            "provider": "Google Analytics",
            "data_sharing": True,
            "retention_period": "2 years",
            "data_types": ["usage_data", "device_info"],
            "processing_purposes": ["analytics", "performance_monitoring"],
        }
    return {
        "provider": domain,
        "data_sharing": False,
        "retention_period": "Session",
        "data_types": ["functional_data"],
        "processing_purposes": ["website_functionality"],
    }


def check_cookie_compliance(
    cookie: CookieObservation,
    source: CookieSource,
    now: datetime | None = None,
) -> list[CookieIssue]:
    """Flag insecure auth cookies, script-readable session cookies and
    long-lived third-party cookies."""
    reference = now or datetime.now(UTC)
    lowered = cookie.name.lower()
    issues: list[CookieIssue] = []

    if not cookie.secure and "auth" in lowered:
        issues.append(
            CookieIssue(
                severity=Severity.HIGH,
                description=f'Authentication cookie "{cookie.name}" is not secure',
                recommendation="Set the Secure flag for authentication cookies",
            )
        )

    if not cookie.http_only and "session" in lowered:
        issues.append(
            CookieIssue(
                severity=Severity.MEDIUM,
                description=f'Session cookie "{cookie.name}" is accessible via JavaScript',
                recommendation="Set the HttpOnly flag for session cookies",
            )
        )

    if (
        source == CookieSource.THIRD_PARTY
        and cookie.expires is not None
        and cookie.expires > reference + THIRD_PARTY_MAX_LIFETIME
    ):
        issues.append(
            CookieIssue(
                severity=Severity.MEDIUM,
                description=f'Third-party cookie "{cookie.name}" has excessive retention period',
                recommendation="Review retention period for third-party cookies",
            )
        )

    return issues


def consent_requirements(counts: Mapping[str, int], third_party: int) -> ConsentRequirements:
    """Banner whenever a non-essential or third-party cookie is present;
    opt-in whenever third-party or marketing cookies are present."""
    has_non_essential = any(
        count > 0 for category, count in counts.items() if category != CookieCategory.ESSENTIAL
    )
    return ConsentRequirements(
        requires_banner=has_non_essential or third_party > 0,
        opt_in_required=third_party > 0 or counts.get(CookieCategory.MARKETING, 0) > 0,
        categories=tuple(CookieCategory(category) for category, count in counts.items() if count > 0),
    )


def normalize_consent_choices(choices: Mapping[str, bool]) -> dict[str, bool]:
    """Fill every category: essential defaults to granted, everything else to denied."""
    return {
        str(category): bool(choices.get(category, category == CookieCategory.ESSENTIAL))
        for category in CookieCategory
    }


def summarize_scan(
    classified: Sequence[tuple[CookieObservation, CookieCategory, CookieSource]],
    now: datetime | None = None,
) -> CookieScanResult:
    """Build the scan result for already-classified cookies."""
    result = CookieScanResult(total_cookies=len(classified))
    for cookie, category, source in classified:
        result.categorized_cookies[str(category)] += 1
        if source == CookieSource.THIRD_PARTY:
            result.third_party_cookies += 1
        result.compliance_issues.extend(check_cookie_compliance(cookie, source, now))
    result.consent_requirements = consent_requirements(
        result.categorized_cookies, result.third_party_cookies
    )
    return result

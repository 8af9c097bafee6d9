"""Fixed value sets used across the engine.

Every severity, risk level, priority and status the engine produces is a
member of one of these enumerations. They are StrEnums so they compare equal
to the plain strings stored in the database and serialized over the API.
"""

from enum import StrEnum


class Severity(StrEnum):
    """Severity of a single finding, health issue or alert."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class RiskLevel(StrEnum):
    """Risk level derived from a numeric score or a gap classification."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class Priority(StrEnum):
    """Priority of a recommendation."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class RequirementLevel(StrEnum):
    """How binding a regulatory rule is. Drives its scoring weight."""

    MANDATORY = "mandatory"
    RECOMMENDED = "recommended"
    OPTIONAL = "optional"


class GapStatus(StrEnum):
    """Merchant status against a single regulatory rule."""

    COMPLIANT = "compliant"
    PARTIAL = "partial"
    NON_COMPLIANT = "non_compliant"


class ComplianceStatus(StrEnum):
    """Overall merchant compliance status, written only by the audit pipeline."""

    PENDING = "pending"
    COMPLIANT = "compliant"
    NON_COMPLIANT = "non_compliant"
    UNDER_REVIEW = "under_review"


class AuditStatus(StrEnum):
    """Lifecycle of a compliance audit record."""

    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class Regulation(StrEnum):
    """Supported privacy regulations."""

    GDPR = "gdpr"
    CCPA = "ccpa"
    PIPEDA = "pipeda"
    UK_GDPR = "uk_gdpr"
    LGPD = "lgpd"
    PDPA = "pdpa"


class RuleCategory(StrEnum):
    """Functional area a regulatory rule belongs to."""

    DATA_COLLECTION = "data_collection"
    CONSENT_MANAGEMENT = "consent_management"
    DATA_RETENTION = "data_retention"
    DATA_SUBJECT_RIGHTS = "data_subject_rights"
    CROSS_BORDER_TRANSFER = "cross_border_transfer"
    BREACH_NOTIFICATION = "breach_notification"
    PRIVACY_POLICY = "privacy_policy"
    COOKIE_MANAGEMENT = "cookie_management"


class AppCategory(StrEnum):
    """Functional category of an installed third-party app."""

    ANALYTICS = "analytics"
    MARKETING = "marketing"
    CUSTOMER_SERVICE = "customer_service"
    INVENTORY = "inventory"
    SHIPPING = "shipping"
    PAYMENT = "payment"
    SOCIAL_MEDIA = "social_media"
    REVIEWS = "reviews"
    EMAIL_MARKETING = "email_marketing"
    ACCOUNTING = "accounting"
    OTHER = "other"


class DataAccessLevel(StrEnum):
    """Breadth of store data an app can reach, derived from its scopes."""

    READ_ONLY = "read_only"
    READ_WRITE = "read_write"
    FULL_ACCESS = "full_access"
    ADMIN = "admin"


class AlertType(StrEnum):
    """Kind of monitoring alert."""

    COMPLIANCE_VIOLATION = "compliance_violation"
    DATA_BREACH = "data_breach"
    POLICY_UPDATE_REQUIRED = "policy_update_required"
    CONSENT_EXPIRY = "consent_expiry"
    DATA_RETENTION_VIOLATION = "data_retention_violation"
    AUDIT_FAILURE = "audit_failure"
    SYSTEM_ERROR = "system_error"


class AlertStatus(StrEnum):
    """Alert lifecycle. Transitions only move forward out of ACTIVE."""

    ACTIVE = "active"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


class RequestType(StrEnum):
    """Data-subject request kinds."""

    ACCESS = "access"
    PORTABILITY = "portability"
    RECTIFICATION = "rectification"
    ERASURE = "erasure"
    RESTRICTION = "restriction"
    OBJECTION = "objection"


class RequestStatus(StrEnum):
    """Data-subject request lifecycle."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    REJECTED = "rejected"


class RequestPriority(StrEnum):
    """Handling priority of a data-subject request."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class CookieCategory(StrEnum):
    """Purpose category of a detected cookie."""

    ESSENTIAL = "essential"
    FUNCTIONAL = "functional"
    ANALYTICS = "analytics"
    MARKETING = "marketing"
    SOCIAL_MEDIA = "social_media"
    ADVERTISING = "advertising"
    PERSONALIZATION = "personalization"


class CookieSource(StrEnum):
    """Whether a cookie is set by the merchant's own domain."""

    FIRST_PARTY = "first_party"
    THIRD_PARTY = "third_party"


class CookieConsentStatus(StrEnum):
    """Whether a cookie needs consent before it may be set."""

    REQUIRED = "required"
    OPTIONAL = "optional"
    EXEMPT = "exempt"

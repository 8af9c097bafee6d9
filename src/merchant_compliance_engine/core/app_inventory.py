"""Normalization of installed-app descriptors into app records.

Descriptors come from an app inventory source. No platform API is called
here; a static source with three representative apps is bundled for local
development and demos.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from merchant_compliance_engine.core.enums import AppCategory, DataAccessLevel

# Checked in order; the first matching keyword decides the category
_CATEGORY_KEYWORDS: tuple[tuple[AppCategory, tuple[str, ...]], ...] = (
    (AppCategory.ANALYTICS, ("analytics", "tracking")),
    (AppCategory.MARKETING, ("marketing", "email")),
    (AppCategory.CUSTOMER_SERVICE, ("customer", "support")),
    (AppCategory.INVENTORY, ("inventory", "stock")),
    (AppCategory.SHIPPING, ("shipping", "fulfillment")),
    (AppCategory.PAYMENT, ("payment", "checkout")),
    (AppCategory.SOCIAL_MEDIA, ("social", "facebook", "instagram")),
    (AppCategory.REVIEWS, ("review", "rating")),
    (AppCategory.ACCOUNTING, ("accounting", "finance")),
)

_DATA_ACCESS_KEYWORDS: tuple[tuple[str, str], ...] = (
    ("customers", "customer_data"),
    ("orders", "order_data"),
    ("products", "product_data"),
    ("inventory", "inventory_data"),
    ("users", "user_data"),
)


@dataclass(frozen=True)
class AppDescriptor:
    """An installed app as reported by the inventory source."""

    app_id: str
    title: str
    description: str | None = None
    developer: str | None = None
    developer_website: str | None = None
    installed_at: datetime | None = None
    privacy_policy_url: str | None = None
    scopes: tuple[str, ...] = ()
    webhooks: tuple[str, ...] = ()


def categorize_app(title: str, description: str | None = None) -> AppCategory:
    text = f"{title} {description or ''}".lower()
    for category, keywords in _CATEGORY_KEYWORDS:
        if any(keyword in text for keyword in keywords):
            return category
    return AppCategory.OTHER


def determine_data_access_level(scopes: tuple[str, ...] | list[str]) -> DataAccessLevel:
    """full_access for more than three write scopes or any read_all scope,
    read_write for any write scope, otherwise read_only."""
    write_scopes = [scope for scope in scopes if "write" in scope]
    if len(write_scopes) > 3 or any("read_all" in scope for scope in scopes):
        return DataAccessLevel.FULL_ACCESS
    if write_scopes:
        return DataAccessLevel.READ_WRITE
    return DataAccessLevel.READ_ONLY


def extract_data_access(scopes: tuple[str, ...] | list[str]) -> list[str]:
    """Map scopes to data areas, de-duplicated in first-seen order."""
    seen: dict[str, None] = {}
    for scope in scopes:
        area = next((name for keyword, name in _DATA_ACCESS_KEYWORDS if keyword in scope), scope)
        seen.setdefault(area, None)
    return list(seen)


def extract_data_types(scopes: tuple[str, ...] | list[str]) -> list[str]:
    data_types: list[str] = []
    if any("customers" in scope for scope in scopes):
        data_types.extend(["personal_data", "contact_information"])
    if any("orders" in scope for scope in scopes):
        data_types.extend(["transaction_data", "payment_information"])
    if any("products" in scope for scope in scopes):
        data_types.append("product_data")
    return data_types


def build_app_fields(descriptor: AppDescriptor) -> dict[str, Any]:
    """Column values for a freshly scanned app record.

    Encryption status and retention period are not disclosed by the platform,
    so they start as "unknown".
    """
    scopes = list(descriptor.scopes)
    return {
        "app_id": descriptor.app_id,
        "app_name": descriptor.title,
        "developer": descriptor.developer,
        "category": categorize_app(descriptor.title, descriptor.description),
        "description": descriptor.description,
        "installed_at": descriptor.installed_at,
        "permissions": {
            "scopes": scopes,
            "data_access": extract_data_access(scopes),
            "webhooks": list(descriptor.webhooks),
            "api_endpoints": [],
        },
        "data_access_level": determine_data_access_level(scopes),
        "risk_factors": {
            "data_types": extract_data_types(scopes),
            "third_party_sharing": True,
            "encryption_status": "unknown",
            "compliance_certifications": [],
            "privacy_policy_url": descriptor.privacy_policy_url,
            "data_retention_period": "unknown",
            "data_location": "unknown",
        },
    }


@dataclass
class StaticAppInventorySource:
    """Inventory source returning a fixed list of descriptors for every merchant."""

    apps: list[AppDescriptor] = field(default_factory=lambda: list(SAMPLE_APPS))

    async def list_installed_apps(self, merchant_id: Any) -> list[AppDescriptor]:
        return list(self.apps)


SAMPLE_APPS: tuple[AppDescriptor, ...] = (
    AppDescriptor(
        app_id="app_123",
        title="Google Analytics Enhanced Ecommerce",
        description="Track your store performance with Google Analytics",
        developer="Google",
        developer_website="https://google.com",
        installed_at=datetime.fromisoformat("2024-01-15T10:00:00+00:00"),
        privacy_policy_url="https://policies.google.com/privacy",
        scopes=("read_orders", "read_customers", "read_products", "write_script_tags"),
        webhooks=("orders/create",),
    ),
    AppDescriptor(
        app_id="app_456",
        title="Mailchimp Email Marketing",
        description="Email marketing and automation platform",
        developer="Mailchimp",
        developer_website="https://mailchimp.com",
        installed_at=datetime.fromisoformat("2024-02-01T14:30:00+00:00"),
        privacy_policy_url="https://mailchimp.com/legal/privacy/",
        scopes=("read_customers", "write_customers", "read_orders"),
        webhooks=("customers/create",),
    ),
    AppDescriptor(
        app_id="app_789",
        title="Custom Analytics Dashboard",
        description="Custom analytics solution",
        developer="Unknown Developer",
        installed_at=datetime.fromisoformat("2024-03-01T09:15:00+00:00"),
        scopes=("read_all_orders", "read_customers", "read_products", "read_inventory", "write_script_tags"),
    ),
)

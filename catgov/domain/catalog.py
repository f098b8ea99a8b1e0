from __future__ import annotations

from enum import Enum
import re


class EntityType(str, Enum):
    # Catalog entity kinds that carry per-country activation overrides.
    CATEGORY = "category"
    SUBCATEGORY = "subcategory"
    BRAND = "brand"
    PRODUCT = "product"
    VARIABLE_TYPE = "variable_type"
    VEHICLE_TYPE = "vehicle_type"


# Legacy spellings accepted from older callers.
_ENTITY_TYPE_ALIASES: dict[str, str] = {
    "variabletype": EntityType.VARIABLE_TYPE.value,
    "variable_types": EntityType.VARIABLE_TYPE.value,
    "variables": EntityType.VARIABLE_TYPE.value,
    "vehicletype": EntityType.VEHICLE_TYPE.value,
    "vehicle_types": EntityType.VEHICLE_TYPE.value,
    "categories": EntityType.CATEGORY.value,
    "sub_category": EntityType.SUBCATEGORY.value,
    "subcategories": EntityType.SUBCATEGORY.value,
    "brands": EntityType.BRAND.value,
    "products": EntityType.PRODUCT.value,
    "master_product": EntityType.PRODUCT.value,
    "master_products": EntityType.PRODUCT.value,
}

_EXTENSION_TYPE = re.compile(r"^[a-z][a-z0-9_]{0,63}$")


def normalize_entity_type(value: EntityType | str) -> str:
    """Return the canonical entity type key.

    Known kinds and their legacy spellings map onto ``EntityType`` values. Any other
    snake_case identifier is accepted as an extension kind so new catalog entities can
    carry overrides without a code change.
    """
    if isinstance(value, EntityType):
        return value.value
    cleaned = str(value).strip()
    snake = re.sub(r"(?<!^)(?=[A-Z])", "_", cleaned).lower().replace("-", "_")
    compact = cleaned.lower().replace("-", "_")
    for candidate in (compact, snake):
        if candidate in _ENTITY_TYPE_ALIASES:
            return _ENTITY_TYPE_ALIASES[candidate]
        try:
            return EntityType(candidate).value
        except ValueError:
            continue
    if _EXTENSION_TYPE.match(snake):
        return snake
    raise ValueError(f"Unsupported entity type: {value}")


class Role(str, Enum):
    SUPER_ADMIN = "super_admin"
    COUNTRY_ADMIN = "country_admin"


def normalize_role(role: Role | str) -> Role:
    # Enforce a stable, lowercased role vocabulary for policy checks.
    if isinstance(role, Role):
        return role
    normalized = str(role).strip().lower().replace("-", "_")
    if normalized in {"superadmin", "super_admin"}:
        return Role.SUPER_ADMIN
    if normalized in {"countryadmin", "country_admin"}:
        return Role.COUNTRY_ADMIN
    raise ValueError(f"Unsupported role: {role}")


class PageScope(str, Enum):
    CENTRALIZED = "centralized"
    COUNTRY_SPECIFIC = "country_specific"


class PageStatus(str, Enum):
    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    PUBLISHED = "published"
    REJECTED = "rejected"


class PageEvent(str, Enum):
    SUBMIT = "submit"
    APPROVE = "approve"
    REJECT = "reject"
    PUBLISH = "publish"
    EDIT = "edit"
    DELETE = "delete"


ADMIN_USERS_MANAGEMENT = "adminUsersManagement"
BUSINESS_MANAGEMENT = "businessManagement"

# Capabilities granted to every admin role.
STANDARD_CAPABILITIES: frozenset[str] = frozenset(
    {
        "requestManagement",
        "responseManagement",
        "priceListingManagement",
        "productManagement",
        BUSINESS_MANAGEMENT,
        "driverVerification",
        "vehicleManagement",
        "cityManagement",
        "userManagement",
        "subscriptionManagement",
        "promoCodeManagement",
        "moduleManagement",
        "categoryManagement",
        "subcategoryManagement",
        "brandManagement",
        "variableTypeManagement",
        "countryProductManagement",
        "countryCategoryManagement",
        "countrySubcategoryManagement",
        "countryBrandManagement",
        "countryVariableTypeManagement",
        "countryVehicleTypeManagement",
        "contentManagement",
        "countryPageManagement",
        "paymentMethodManagement",
        "legalDocumentManagement",
        "smsConfiguration",
    }
)

SUPER_ADMIN_ONLY_CAPABILITIES: frozenset[str] = frozenset({ADMIN_USERS_MANAGEMENT})


def default_capabilities(role: Role | str) -> frozenset[str]:
    # Derive the full capability set a new principal receives for its role.
    if normalize_role(role) is Role.SUPER_ADMIN:
        return STANDARD_CAPABILITIES | SUPER_ADMIN_ONLY_CAPABILITIES
    return STANDARD_CAPABILITIES

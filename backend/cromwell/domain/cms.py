"""
CMS Settings Domain Models

The `cms` table holds three JSON documents:
- public_settings: visible to the storefront (url, theme, currencies, ...)
- admin_settings: visible to administrators only (SMTP, signup, ...)
- internal_settings: managed by the system (installed flag, versions, ...)

`CmsSettings` is the merged, flat view used by the API and the manager.
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

# Services whose running instances watch their version in CMS settings
SERVICE_VERSION_NAMES = ("renderer", "admin", "server", "api_server")


class CmsModules(BaseModel):
    ecommerce: bool = True
    blog: bool = True


class CmsEntity(BaseModel):
    """Raw row of the `cms` table"""
    id: Optional[int] = None
    public_settings: Dict[str, Any] = {}
    admin_settings: Dict[str, Any] = {}
    internal_settings: Dict[str, Any] = {}


class CmsSettings(BaseModel):
    """Merged CMS settings"""

    # Public
    url: Optional[str] = None
    theme_name: Optional[str] = None
    default_page_size: Optional[int] = None
    currencies: List[Dict[str, Any]] = []
    timezone: Optional[int] = None
    language: Optional[str] = None
    favicon: Optional[str] = None
    logo: Optional[str] = None
    head_html: Optional[str] = None
    footer_html: Optional[str] = None
    default_shipping_price: Optional[float] = None
    disable_pay_later: Optional[bool] = None
    custom_meta: Dict[str, Any] = {}
    modules: CmsModules = Field(default_factory=CmsModules)

    # Admin
    send_from_email: Optional[str] = None
    send_mail_from_name: Optional[str] = None
    smtp_connection_string: Optional[str] = None
    signup_enabled: Optional[bool] = None
    signup_roles: List[str] = []
    revalidate_cache_after: Optional[int] = None
    clear_cache_on_data_update: Optional[bool] = None

    # Internal
    installed: bool = False
    version: Optional[str] = None
    beta: bool = False
    is_updating: bool = False
    versions: Dict[str, int] = {}
    watch_poll: Optional[int] = Field(None, description="Manager polling interval in ms")


class AdminCmsSettingsInput(BaseModel):
    """Payload of PUT /cms/admin-settings"""
    url: Optional[str] = None
    theme_name: Optional[str] = None
    default_page_size: Optional[int] = None
    currencies: Optional[Any] = None
    timezone: Optional[int] = None
    language: Optional[str] = None
    favicon: Optional[str] = None
    logo: Optional[str] = None
    head_html: Optional[str] = None
    footer_html: Optional[str] = None
    default_shipping_price: Optional[float] = None
    disable_pay_later: Optional[bool] = None
    custom_meta: Optional[Dict[str, Any]] = None
    modules: Optional[Dict[str, Any]] = None

    send_from_email: Optional[str] = None
    send_mail_from_name: Optional[str] = None
    smtp_connection_string: Optional[str] = None
    signup_enabled: Optional[bool] = None
    signup_roles: Optional[List[str]] = None
    revalidate_cache_after: Optional[int] = None
    clear_cache_on_data_update: Optional[bool] = None

    robots_content: Optional[str] = None


class AdminCmsSettings(CmsSettings):
    robots_content: Optional[str] = None


class CmsNotification(BaseModel):
    type: str
    message: str
    documentation_link: Optional[str] = None
    page_link: Optional[str] = None


class CmsStatus(BaseModel):
    current_version: Optional[str] = None
    is_updating: bool = False
    notifications: List[CmsNotification] = []


class DashboardLayout(BaseModel):
    type: Optional[str] = None
    layout: Dict[str, Any] = {}


class ModuleInfo(BaseModel):
    """Contents of a plugin or theme `cromwell.json`"""
    name: str
    type: str
    title: Optional[str] = None
    description: Optional[str] = None
    version: Optional[str] = None
    icon: Optional[str] = None
    image: Optional[str] = None
    images: List[str] = []
    pages: List[Dict[str, Any]] = []

    model_config = {"extra": "allow"}


def extract_service_version(settings: Optional[CmsSettings], service_name: str) -> Optional[int]:
    """Version counter of a service, or None when unset"""
    if not settings or not settings.versions:
        return None
    return settings.versions.get(service_name)

"""
CMS Service - settings, dashboards, sitemap and installed modules

Settings are stored in the single `cms` row as three JSON documents and
exposed merged as `CmsSettings`. Services watched by the manager restart
when their entry in `internal_settings.versions` changes.
"""
import base64
import json
import logging
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional
from xml.sax.saxutils import escape

from cromwell.core.config import settings as app_settings
from cromwell.core.exceptions import BadRequestError, CmsError
from cromwell.domain.cms import (
    SERVICE_VERSION_NAMES,
    AdminCmsSettings,
    AdminCmsSettingsInput,
    CmsEntity,
    CmsNotification,
    CmsSettings,
    CmsStatus,
    DashboardLayout,
    ModuleInfo,
)
from cromwell.repositories.cms_repository import CmsRepository
from cromwell.repositories.product_repository import ProductRepository
from cromwell.services.cache_strategy import CACHE_STRATEGIES, CacheStrategyManager, cacheable

logger = logging.getLogger(__name__)

PUBLIC_KEYS = (
    "url", "theme_name", "default_page_size", "currencies", "timezone", "language",
    "favicon", "logo", "head_html", "footer_html", "default_shipping_price",
    "disable_pay_later", "custom_meta", "modules",
)
ADMIN_KEYS = (
    "send_from_email", "send_mail_from_name", "smtp_connection_string", "signup_enabled",
    "signup_roles", "revalidate_cache_after", "clear_cache_on_data_update",
)

MODULE_CONFIG_FILE = "cromwell.json"
# Build-time keys of a module config, not exposed through the API
MODULE_DEPENDENCY_KEYS = ("frontendDependencies", "bundledDependencies", "firstLoadedDependencies")

# Route placeholders of pages generated per entity
DYNAMIC_ROUTE_MARKERS = ("[slug]", "[id]")
EXCLUDED_ROUTES = ("index", "404")

SITEMAP_FILE = "default_sitemap.xml"
ROBOTS_FILE = "robots.txt"

SMTP_DOCS_LINK = "https://cromwellcms.com/docs/features/mail"

DEFAULT_DASHBOARD_LAYOUT: Dict[str, Any] = {
    "type": "template",
    "layout": {
        "lg": [
            {"w": 8, "h": 2, "x": 0, "y": 0, "i": "productRating"},
            {"w": 4, "h": 2, "x": 8, "y": 0, "i": "salesValue"},
            {"w": 6, "h": 2, "x": 0, "y": 2, "i": "pageViews"},
            {"w": 6, "h": 2, "x": 6, "y": 2, "i": "orders"},
        ],
    },
}


class CmsService:
    def __init__(
        self,
        cms_repository: Optional[CmsRepository] = None,
        product_repository: Optional[ProductRepository] = None,
        cache_strategy_manager: Optional[CacheStrategyManager] = None,
        public_dir: Optional[str] = None,
        modules_dir: Optional[str] = None,
    ):
        self.cms_repository = cms_repository or CmsRepository()
        self.product_repository = product_repository or ProductRepository()
        self.cache_strategy_manager = cache_strategy_manager
        self.public_dir = Path(public_dir or app_settings.PUBLIC_DIR)
        self.modules_dir = Path(modules_dir or app_settings.MODULES_DIR)

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    @staticmethod
    def merge_settings(entity: CmsEntity) -> Dict[str, Any]:
        """Public over admin over internal; unset (None) values do not override"""
        merged: Dict[str, Any] = {}
        for document in (entity.internal_settings, entity.admin_settings, entity.public_settings):
            merged.update({key: value for key, value in (document or {}).items() if value is not None})
        return merged

    @cacheable(CACHE_STRATEGIES["cms_settings"], key_generator=lambda: "settings", model=CmsSettings)
    def get_settings(self) -> CmsSettings:
        entity = self.cms_repository.get_cms_entity()
        return CmsSettings(**self.merge_settings(entity))

    def _fire_event(self, event_name: str):
        if self.cache_strategy_manager is not None:
            self.cache_strategy_manager.handle_event(event_name)

    def bump_service_version(self, service_name: str) -> int:
        """
        Increment the version of a service so its manager restarts it

        Raises:
            BadRequestError if the service is not a watched one
        """
        if service_name not in SERVICE_VERSION_NAMES:
            raise BadRequestError(
                f"Unknown service {service_name}. Valid services: {', '.join(SERVICE_VERSION_NAMES)}"
            )

        entity = self.cms_repository.get_cms_entity()
        internal = dict(entity.internal_settings or {})
        versions = dict(internal.get("versions") or {})
        versions[service_name] = int(versions.get(service_name) or 0) + 1
        internal["versions"] = versions
        entity.internal_settings = internal

        self.cms_repository.save_cms_entity(entity)
        logger.info(f"Service {service_name} version bumped to {versions[service_name]}")
        self._fire_event("cms.update")
        return versions[service_name]

    def set_theme_name(self, theme_name: str) -> bool:
        entity = self.cms_repository.get_cms_entity()
        entity.public_settings = {**(entity.public_settings or {}), "theme_name": theme_name}
        self.cms_repository.save_cms_entity(entity)

        self.bump_service_version("renderer")
        self._fire_event("theme.change")
        return True

    def update_cms_settings(self, input: AdminCmsSettingsInput) -> AdminCmsSettings:
        entity = self.cms_repository.get_cms_entity()

        currencies = input.currencies
        if isinstance(currencies, str):
            try:
                currencies = json.loads(currencies)
            except ValueError as e:
                logger.error(f"Failed to parse currencies: {e}")
                currencies = (entity.public_settings or {}).get("currencies") or []

        public_settings = {key: getattr(input, key) for key in PUBLIC_KEYS}
        public_settings["currencies"] = currencies
        public_settings["modules"] = {
            "ecommerce": bool((input.modules or {}).get("ecommerce")),
            "blog": bool((input.modules or {}).get("blog")),
        }
        entity.public_settings = public_settings
        entity.admin_settings = {key: getattr(input, key) for key in ADMIN_KEYS}

        self.cms_repository.save_cms_entity(entity)

        if input.robots_content:
            self.public_dir.mkdir(parents=True, exist_ok=True)
            (self.public_dir / ROBOTS_FILE).write_text(input.robots_content, encoding="utf-8")

        self._fire_event("cms.update")
        self._fire_event("theme.update")

        return self.get_admin_settings()

    def get_admin_settings(self) -> AdminCmsSettings:
        admin_settings = AdminCmsSettings(**self.get_settings().model_dump())

        robots_path = self.public_dir / ROBOTS_FILE
        try:
            if robots_path.exists():
                admin_settings.robots_content = robots_path.read_text(encoding="utf-8")
        except OSError as e:
            logger.error(f"Failed to read {robots_path}: {e}")

        return admin_settings

    def get_cms_status(self) -> CmsStatus:
        settings = self.get_settings()
        status = CmsStatus(
            current_version=settings.version,
            is_updating=settings.is_updating,
        )

        if not settings.smtp_connection_string:
            status.notifications.append(CmsNotification(
                type="warning",
                message="Setup SMTP settings",
                documentation_link=SMTP_DOCS_LINK,
                page_link="/admin/settings",
            ))

        return status

    # ------------------------------------------------------------------
    # Dashboard
    # ------------------------------------------------------------------

    def get_dashboard_layout(self, user_id: int) -> DashboardLayout:
        """User layout, else the system template, else the built-in default"""
        layout = self.cms_repository.get_dashboard_layout(user_id)
        if layout is not None:
            return DashboardLayout(type="user", layout=layout)

        template = self.cms_repository.get_template_dashboard()
        if template is not None:
            return DashboardLayout(type="template", layout=template)

        return DashboardLayout(**DEFAULT_DASHBOARD_LAYOUT)

    def set_dashboard_layout(self, user_id: int, layout: Dict[str, Any]) -> DashboardLayout:
        saved = self.cms_repository.save_dashboard_layout(layout, user_id=user_id)
        return DashboardLayout(type="user", layout=saved)

    # ------------------------------------------------------------------
    # Modules
    # ------------------------------------------------------------------

    def _read_file_base64(self, module_dir: Path, relative_path: str) -> Optional[str]:
        path = module_dir / relative_path
        try:
            if path.is_file():
                return base64.b64encode(path.read_bytes()).decode("ascii")
        except OSError as e:
            logger.error(f"Failed to read {path}: {e}")
        return None

    def read_module_info(self, module_type: str, name: str) -> Optional[ModuleInfo]:
        """Config of an installed plugin or theme, images inlined as base64"""
        module_dir = self.modules_dir / module_type / name
        config_path = module_dir / MODULE_CONFIG_FILE
        if not config_path.is_file():
            return None

        try:
            config = json.loads(config_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.error(f"Failed to read module config {config_path}: {e}")
            return None

        for key in MODULE_DEPENDENCY_KEYS:
            config.pop(key, None)
        config.setdefault("name", name)
        config.setdefault("type", module_type.rstrip("s"))

        if config.get("icon"):
            config["icon"] = self._read_file_base64(module_dir, config["icon"]) or config["icon"]

        images = list(config.get("images") or [])
        if config.get("image"):
            config["image"] = self._read_file_base64(module_dir, config["image"]) or config["image"]
            if config["image"] not in images:
                images.append(config["image"])
        config["images"] = images

        return ModuleInfo(**config)

    def _read_modules(self, module_type: str) -> List[Dict[str, Any]]:
        base_dir = self.modules_dir / module_type
        if not base_dir.is_dir():
            return []

        modules = []
        for module_dir in sorted(base_dir.iterdir()):
            if not module_dir.is_dir():
                continue
            info = self.read_module_info(module_type, module_dir.name)
            if info is not None:
                modules.append(info.model_dump())
        return modules

    @cacheable(CACHE_STRATEGIES["plugin_data"], key_generator=lambda: "installed_plugins")
    def read_plugins(self) -> List[Dict[str, Any]]:
        return self._read_modules("plugins")

    @cacheable(CACHE_STRATEGIES["theme_config"], key_generator=lambda: "installed_themes")
    def read_themes(self) -> List[Dict[str, Any]]:
        return self._read_modules("themes")

    # ------------------------------------------------------------------
    # Sitemap
    # ------------------------------------------------------------------

    def build_sitemap(self) -> bool:
        """
        Write PUBLIC_DIR/default_sitemap.xml from theme pages and enabled products

        Raises:
            CmsError if the website URL or theme is not configured
        """
        settings = self.get_settings()
        if not settings.url:
            raise CmsError("Could not find website's URL")
        if not settings.theme_name:
            raise CmsError("Could not find website's themeName")

        base_url = settings.url.rstrip("/")
        urls: List[str] = []
        entries: List[str] = []

        def add_page(route: str, updated: Optional[datetime]):
            if not route.startswith("/"):
                route = "/" + route
            if not route.startswith("http"):
                route = base_url + route
            if route in urls:
                return
            urls.append(route)

            lastmod = (updated or datetime.now()).strftime("%Y-%m-%d")
            entries.append(
                f"  <url>\n    <loc>{escape(route)}</loc>\n    <lastmod>{lastmod}</lastmod>\n  </url>"
            )

        theme = self.read_module_info("themes", settings.theme_name)
        for page in (theme.pages if theme else []):
            route = page.get("route")
            if (
                not route
                or any(marker in route for marker in DYNAMIC_ROUTE_MARKERS)
                or route in EXCLUDED_ROUTES
            ):
                continue
            add_page(route, None)

        for product in self.product_repository.get_enabled_slugs():
            slug = product.get("slug") or str(product["id"])
            add_page(f"/product/{slug}", product.get("update_date") or product.get("create_date"))

        content = (
            '<?xml version="1.0" encoding="UTF-8"?>\n'
            '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">\n'
            + "\n".join(entries)
            + "\n</urlset>"
        )

        self.public_dir.mkdir(parents=True, exist_ok=True)
        (self.public_dir / SITEMAP_FILE).write_text(content, encoding="utf-8")
        logger.info(f"Sitemap built with {len(urls)} urls ({date.today().isoformat()})")
        return True

"""
CMS API Endpoints

Settings, status, dashboard layouts, installed modules, sitemap and
service versions used by the manager to restart services.
"""
from typing import Any, Dict

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from cromwell.core.auth import AuthUserInfo, get_current_user, require_admin
from cromwell.domain.cms import AdminCmsSettingsInput
from cromwell.services.cache_manager import get_cache_manager
from cromwell.services.cache_strategy import get_cache_strategy_manager
from cromwell.services.cms_service import CmsService
from cromwell.services.database_optimizer import get_database_optimizer
from cromwell.services.performance_monitor import performance_monitor

router = APIRouter()


class ThemeNameInput(BaseModel):
    theme_name: str


class DashboardLayoutInput(BaseModel):
    layout: Dict[str, Any]


def get_cms_service() -> CmsService:
    return CmsService(cache_strategy_manager=get_cache_strategy_manager())


@router.get("/settings")
async def get_settings(service: CmsService = Depends(get_cms_service)):
    """Public CMS settings (also polled by the manager for service versions)"""
    settings = service.get_settings()
    return settings.model_dump(exclude={"smtp_connection_string", "send_from_email", "send_mail_from_name"})


@router.get("/admin-settings")
async def get_admin_settings(
    user: AuthUserInfo = Depends(require_admin),
    service: CmsService = Depends(get_cms_service)
):
    return service.get_admin_settings().model_dump()


@router.put("/admin-settings")
async def update_admin_settings(
    input: AdminCmsSettingsInput,
    user: AuthUserInfo = Depends(require_admin),
    service: CmsService = Depends(get_cms_service)
):
    return service.update_cms_settings(input).model_dump()


@router.put("/theme")
async def set_theme(
    input: ThemeNameInput,
    user: AuthUserInfo = Depends(require_admin),
    service: CmsService = Depends(get_cms_service)
):
    return {"status": "success", "data": service.set_theme_name(input.theme_name)}


@router.get("/status")
async def get_cms_status(
    user: AuthUserInfo = Depends(require_admin),
    service: CmsService = Depends(get_cms_service)
):
    return service.get_cms_status().model_dump()


@router.get("/dashboard-layout")
async def get_dashboard_layout(
    user: AuthUserInfo = Depends(get_current_user),
    service: CmsService = Depends(get_cms_service)
):
    return service.get_dashboard_layout(user.id).model_dump()


@router.post("/dashboard-layout")
async def set_dashboard_layout(
    input: DashboardLayoutInput,
    user: AuthUserInfo = Depends(get_current_user),
    service: CmsService = Depends(get_cms_service)
):
    return service.set_dashboard_layout(user.id, input.layout).model_dump()


@router.post("/build-sitemap")
async def build_sitemap(
    user: AuthUserInfo = Depends(require_admin),
    service: CmsService = Depends(get_cms_service)
):
    return {"status": "success", "data": service.build_sitemap()}


@router.get("/plugins")
async def read_plugins(service: CmsService = Depends(get_cms_service)):
    return {"status": "success", "data": service.read_plugins()}


@router.get("/themes")
async def read_themes(service: CmsService = Depends(get_cms_service)):
    return {"status": "success", "data": service.read_themes()}


@router.post("/services/{service_name}/bump-version")
async def bump_service_version(
    service_name: str,
    user: AuthUserInfo = Depends(require_admin),
    service: CmsService = Depends(get_cms_service)
):
    """Ask the manager to restart a service"""
    return {"status": "success", "data": {"service": service_name, "version": service.bump_service_version(service_name)}}


@router.get("/cache/stats")
async def get_cache_stats(user: AuthUserInfo = Depends(require_admin)):
    return {"status": "success", "data": get_cache_manager().get_stats()}


@router.post("/cache/flush")
async def flush_cache(user: AuthUserInfo = Depends(require_admin)):
    get_cache_manager().flush()
    return {"status": "success", "message": "All caches flushed"}


@router.get("/metrics")
async def get_metrics(user: AuthUserInfo = Depends(require_admin)):
    return {
        "status": "success",
        "data": {
            "current": performance_monitor.get_current_metrics(),
            "requests": performance_monitor.get_request_statistics(),
            "queries": get_database_optimizer().get_query_metrics(),
        }
    }

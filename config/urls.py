"""
URL configuration for StayEase project.
"""
import logging

from django.contrib import admin
from django.urls import path
from django.conf import settings
from django.conf.urls.static import static
from django.http import Http404
from ninja import NinjaAPI
from ninja.errors import HttpError, ValidationError

logger = logging.getLogger(__name__)

api = NinjaAPI(
    title="StayEase API",
    version="1.0.0",
    description="Apartment rental and building management API",
    docs_url="/docs",
)


# =============================================================================
# Error rendering: every failure answers {"error": "<message>"}
# =============================================================================

@api.exception_handler(HttpError)
def http_error(request, exc: HttpError):
    return api.create_response(request, {"error": str(exc)}, status=exc.status_code)


@api.exception_handler(ValidationError)
def validation_error(request, exc: ValidationError):
    return api.create_response(
        request,
        {"error": "Dữ liệu không hợp lệ", "details": exc.errors},
        status=400,
    )


@api.exception_handler(Http404)
def not_found(request, exc: Http404):
    return api.create_response(request, {"error": str(exc) or "Không tìm thấy"}, status=404)


@api.exception_handler(Exception)
def server_error(request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.path}: {exc}")
    return api.create_response(request, {"error": "Lỗi server"}, status=500)


from apps.identity.api import auth_router, me_router, users_router
from apps.organizations.api import router as organizations_router
from apps.governance.api import router as audit_router
from apps.apartments.api import router as apartments_router, residents_router
from apps.amenities.api import router as amenities_router
from apps.billing.api import (
    invoices_router,
    payment_router,
    financial_router,
    me_router as billing_me_router,
)
from apps.community.api import router as posts_router
from apps.maintenance.api import router as service_requests_router
from apps.core.api import upload_router
from apps.dashboard.api import dashboard_router, home_router

api.add_router("/auth", auth_router)
api.add_router("/me", me_router)
api.add_router("/me", billing_me_router)
api.add_router("/users", users_router)
api.add_router("/residents", residents_router)
api.add_router("/apartments", apartments_router)
api.add_router("/amenities", amenities_router)
api.add_router("/invoices", invoices_router)
api.add_router("/payment", payment_router)
api.add_router("/financial", financial_router)
api.add_router("/posts", posts_router)
api.add_router("/service-requests", service_requests_router)
api.add_router("/upload", upload_router)
api.add_router("/dashboard", dashboard_router)
api.add_router("/home", home_router)
api.add_router("/organizations", organizations_router)
api.add_router("/audit-logs", audit_router)

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/', api.urls),
]

# Serve media files in development
if settings.DEBUG:
    urlpatterns += static(
        getattr(settings, 'MEDIA_URL', '/media/'),
        document_root=getattr(settings, 'MEDIA_ROOT', settings.BASE_DIR / 'media')
    )

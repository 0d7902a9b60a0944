"""
URL configuration for the workhub project.

Every API route lives under /api/; the webhook sits at
/api/finance/webhooks/razorpay/.
"""
from django.conf import settings
from django.conf.urls.static import static
from django.contrib import admin
from django.urls import include, path
from drf_yasg import openapi
from drf_yasg.views import get_schema_view
from rest_framework import permissions

schema_view = get_schema_view(
   openapi.Info(
      title="WorkHub API",
      default_version='v1',
      description="API documentation for the WorkHub freelance marketplace",
      license=openapi.License(name="BSD License"),
   ),
   public=True,
   permission_classes=(permissions.AllowAny,),
)

# Customize admin site
admin.site.site_header = settings.ADMIN_SITE_HEADER
admin.site.site_title = settings.ADMIN_SITE_TITLE
admin.site.index_title = settings.ADMIN_INDEX_TITLE

# API URL routing
urlpatterns = [
    path('api/', include('core.urls')),
    path('api/', include('financeapp.urls')),
    path('api/', include('chat.urls')),
    path('admin/', admin.site.urls),
    path('swagger/', schema_view.with_ui('swagger', cache_timeout=0), name='swagger-docs'),
    path('redoc/', schema_view.with_ui('redoc', cache_timeout=0), name='redoc-docs'),
] + static(settings.STATIC_URL, document_root=settings.STATIC_ROOT)

"""
URL configuration for task_planner project.
"""

from django.urls import path, include
from django.http import JsonResponse
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView, SpectacularSwaggerView


def home_view(request):
    """Root endpoint with API information."""
    return JsonResponse({
        'message': 'Welcome to Task Planner API',
        'version': '1.0.0',
        'endpoints': {
            'API Root': '/api/',
            'Task Hierarchy': 'POST /api/tasks/hierarchy/',
            'Top Tasks': 'POST /api/tasks/top/',
            'Calendar': 'POST /api/tasks/calendar/',
            'Summary': 'POST /api/tasks/summary/',
            'API Documentation': '/api/docs/',
            'OpenAPI Schema': '/api/schema/',
        }
    })


urlpatterns = [
    path('', home_view, name='home'),
    path('api/', include('tasks.urls')),
    # OpenAPI/Swagger Documentation
    path('api/schema/', SpectacularAPIView.as_view(), name='schema'),
    path('api/docs/', SpectacularSwaggerView.as_view(url_name='schema'), name='swagger-ui'),
    path('api/redoc/', SpectacularRedocView.as_view(url_name='schema'), name='redoc'),
]

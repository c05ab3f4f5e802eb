"""
Marketfeed URL Configuration
"""
from django.contrib import admin
from django.urls import path, include
from django.http import JsonResponse


def api_root(request):
    """Root endpoint with API information."""
    return JsonResponse({
        'message': 'Marketfeed Content API',
        'version': '1.0',
        'endpoints': {
            'timeline': '/api/feed/',
            'trending': '/api/trending/',
            'posts': '/api/posts/<id>/',
            'thread': '/api/posts/<id>/comments/',
            'reactions': '/api/posts/<id>/reactions/',
            'follows': '/api/users/<id>/follow/',
            'suggestions': '/api/users/suggested/',
            'auth': '/api/auth/',
        },
        'admin': '/admin/',
    })


urlpatterns = [
    path('', api_root, name='api-root'),
    path('admin/', admin.site.urls),
    path('api/', include('social.urls')),
]

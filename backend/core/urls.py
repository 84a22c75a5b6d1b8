"""
Root URL configuration.

/api/             file and auth endpoints
/uploads/<name>   physical blob retrieval
"""
from django.urls import include, path, re_path
from files.views import serve_blob

urlpatterns = [
    path('api/', include('files.urls')),
    re_path(r'^uploads/(?P<location>[^/]+)$', serve_blob, name='blob-download'),
]

"""
URL configuration for paperplane project.

The `urlpatterns` list routes URLs to views. For more information please see:
    https://docs.djangoproject.com/en/5.0/topics/http/urls/
"""
from django.contrib import admin
from django.urls import path

from apps.content import api as content_api
from apps.core import api as core_api


urlpatterns = [
    path('admin/', admin.site.urls),

    path('api/health', core_api.health),
    path('api/auth/login', core_api.login),
    path('api/auth/logout', core_api.logout),
    path('api/auth/oidc/status', core_api.oidc_status),
    path('api/auth/oidc/login', core_api.oidc_login),
    path('api/auth/oidc/callback', core_api.oidc_callback),
    path('api/auth/oidc/logout', core_api.oidc_logout),

    path('api/questions', content_api.question_list),
    path('api/questions/extract', content_api.extract),
    path('api/questions/upload', content_api.upload),
    path('api/questions/upload-batch', content_api.upload_batch),
    path('api/questions/filter-options', content_api.filter_options),
    path('api/questions/create-indexes', content_api.create_indexes),
    path('api/questions/delete-multiple', content_api.delete_multiple),
    path('api/questions/image-proxy', content_api.image_proxy),
    path('api/questions/<int:pk>', content_api.question_detail),
]

from django.urls import path

from .views import LoginAPI, MeAPI, RegisterAPI

urlpatterns = [
    path("auth/register/", RegisterAPI.as_view(), name="api_auth_register"),
    path("auth/login/", LoginAPI.as_view(), name="api_auth_login"),
    path("auth/me/", MeAPI.as_view(), name="api_auth_me"),
]

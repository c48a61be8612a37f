from django.urls import path

from . import views

app_name = "css_pipeline"

urlpatterns = [
    path("notify/", views.notify, name="notify"),
]

from django.apps import AppConfig


class CSSPipelineConfig(AppConfig):
    name = "django_css_pipeline"
    verbose_name = "CSS pipeline"
    default_auto_field = "django.db.models.AutoField"

from django.apps import AppConfig


class IamConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "cm_core.iam"
    label = "iam"

    def ready(self) -> None:
        # registers the auth scheme with drf-spectacular
        from cm_core.iam import openapi  # noqa: F401

from django.apps import AppConfig


class DocEngineConfig(AppConfig):
    name = "docengine"
    verbose_name = "Document engine"

import json
import os

from django.core.management.base import BaseCommand
from django.test import RequestFactory
from drf_yasg.views import get_schema_view
from rest_framework.permissions import AllowAny

from config.urls import API_INFO


class Command(BaseCommand):
    help = "Write the OpenAPI/Swagger document of the API to a JSON file."

    def add_arguments(self, parser):
        parser.add_argument("--output", default=os.path.join("interfaces", "openapi.json"))

    def handle(self, *args, **options):
        """
        Generate and persist an OpenAPI/Swagger spec for the running Django project.

        Used by CI to publish an API interface snapshot (default:
        interfaces/openapi.json, relative to where manage.py runs).
        """
        factory = RequestFactory()

        # drf-yasg uses the request to determine host/scheme and the basePath.
        # Without an explicit format it negotiates YAML.
        django_request = factory.get("/swagger.json", HTTP_ACCEPT="application/json")

        schema_view = get_schema_view(API_INFO, public=True, permission_classes=(AllowAny,))

        response = schema_view.without_ui(cache_timeout=0)(django_request, format=".json")
        response.render()

        openapi_schema = json.loads(response.content.decode())

        output_path = options["output"]
        output_dir = os.path.dirname(output_path)
        if output_dir:
            os.makedirs(output_dir, exist_ok=True)

        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(openapi_schema, f, indent=2, sort_keys=True)
        self.stdout.write(f"Wrote {output_path}")

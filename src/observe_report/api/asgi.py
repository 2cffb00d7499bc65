"""ASGI entrypoint for the observation report API."""

from observe_report.api.app import create_app
from observe_report.containers import build_container

app = create_app(build_container())

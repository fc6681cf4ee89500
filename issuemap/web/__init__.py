"""JSON API over the dependency service."""

from issuemap.web.app import create_app

__all__ = ["create_app"]

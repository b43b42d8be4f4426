"""Routers package."""

from . import (
    health,
    social_connect,
)

"""
etc_services -- composition root.

``build_services`` turns a Settings object into fully wired services.  It is
the only place that knows which gateway implementation backs which service.
"""

from etc_services.container import ServiceContainer, build_services

__all__ = ["ServiceContainer", "build_services"]

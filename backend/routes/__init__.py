"""
Caelex Compliance Core - Routes Package

Thin API routers over the compliance services.
"""

from .authorization import router as authorization_router, set_dependencies as set_authorization_deps
from .compliance import router as compliance_router, set_dependencies as set_compliance_deps

__all__ = [
    'authorization_router', 'set_authorization_deps',
    'compliance_router', 'set_compliance_deps',
]

"""
Web module for the Print Agent.

Exposes blueprints for:
- Versioned JSON render/print API: api_bp
- Health endpoint: health_bp
"""

from .api import api_bp
from .health import health_bp

__all__ = ["api_bp", "health_bp"]

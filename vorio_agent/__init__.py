"""Vorio Agent - bridges a local hotspot controller with Vorio Cloud"""

from .config import AGENT_VERSION as __version__

__all__ = ['__version__']

"""Services package"""

from .vorio_client import VorioClient

__all__ = ['VorioClient']

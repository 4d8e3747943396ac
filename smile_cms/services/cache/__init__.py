from .view_cache import BaseViewCache, ViewCache, ViewInvalidator

__all__ = [
    'BaseViewCache',
    'ViewCache',
    'ViewInvalidator',
]

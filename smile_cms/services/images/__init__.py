"""
Reward Image Services

- Image validation and object-key helpers
- Upload pipeline with cancellation
- In-flight upload registry
"""

from .image_validation import ImageFile, ImageValidationResult, validate_image
from .upload_registry import CancellationToken, UploadHandle, UploadRegistry
from .upload_service import ImageUploadService, UploadResult

__all__ = [
    'CancellationToken',
    'ImageFile',
    'ImageUploadService',
    'ImageValidationResult',
    'UploadHandle',
    'UploadRegistry',
    'UploadResult',
    'validate_image',
]

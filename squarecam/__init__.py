"""Square camera package.

Orientation, size selection and square cropping for a camera that captures the
square shown by its overlay mask. Hardware sits behind `session.CameraSession`.
"""

__all__ = [
    "config",
    "core",
    "cropper",
    "errors",
    "flash",
    "orientation",
    "pipeline",
    "session",
    "sizes",
    "ui",
]

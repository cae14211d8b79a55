"""Error types for squarecam.

Camera errors are the single "camera error" signal a listener receives from the
controller. Capture errors end one capture request and leave the session usable.
"""
import logging

logger = logging.getLogger(__name__)


class SquareCamError(Exception):
    """Base exception for squarecam errors"""
    def __init__(self, message, error_code, details=None):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self):
        """Convert error to a JSON-serializable dict"""
        return {
            "success": False,
            "error": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }


# Camera setup errors
class CameraError(SquareCamError):
    """Camera setup or session errors"""
    pass


class NoQualifyingSize(CameraError):
    """No supported size matches the aspect constraint and width bound"""
    def __init__(self, max_width, aspect=(4, 3), candidates=None):
        super().__init__(
            message=f"No supported size with aspect {aspect[0]}:{aspect[1]} and width <= {max_width}",
            error_code="NO_QUALIFYING_SIZE",
            details={
                "max_width": max_width,
                "aspect": list(aspect),
                "candidates": [list(c) for c in (candidates or [])],
            }
        )


class CameraOpenFailure(CameraError):
    """Camera could not be opened"""
    def __init__(self, camera_id, reason=None):
        super().__init__(
            message=f"Can't open camera with id {camera_id}",
            error_code="CAMERA_OPEN_FAILED",
            details={
                "camera_id": camera_id,
                "reason": reason,
            }
        )


class PreviewStartFailure(CameraError):
    """Preview could not be started"""
    def __init__(self, camera_id, reason=None):
        super().__init__(
            message=f"Can't start camera preview for camera {camera_id}",
            error_code="PREVIEW_START_FAILED",
            details={
                "camera_id": camera_id,
                "reason": reason,
            }
        )


class CaptureInProgress(CameraError):
    """A capture request is still waiting for its frame"""
    def __init__(self, operation="capture"):
        super().__init__(
            message=f"Can't {operation} while a capture is in flight",
            error_code="CAPTURE_IN_PROGRESS",
            details={"operation": operation}
        )


# Capture errors
class CaptureError(SquareCamError):
    """Errors that terminate a single capture request"""
    pass


class DecodeFailure(CaptureError):
    """Captured bytes could not be decoded into an image"""
    def __init__(self, size, reason=None):
        super().__init__(
            message=f"Failed to decode {size} bytes of captured frame data",
            error_code="DECODE_FAILED",
            details={
                "size": size,
                "reason": reason,
            }
        )


class CaptureFailure(CaptureError):
    """Processing the captured frame (rotate, crop or anything unexpected) failed"""
    def __init__(self, stage, reason=None):
        super().__init__(
            message=f"Captured frame processing failed during {stage}",
            error_code="CAPTURE_FAILED",
            details={
                "stage": stage,
                "reason": reason,
            }
        )


def log_error(error: SquareCamError, level=logging.ERROR):
    """Log a squarecam error with its code and details."""
    logger.log(level, f"[{error.error_code}] {error.message} {error.details}")

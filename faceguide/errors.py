"""Exception taxonomy."""


class FaceGuideError(Exception):
    """Base class for all viewfinder errors."""
    pass


class ConfigurationError(FaceGuideError):
    """Invalid configuration value."""
    pass


class ModelLoadError(FaceGuideError):
    """Face models could not be loaded; detection stays disabled for the session."""
    pass


class AcquisitionError(FaceGuideError):
    """Camera permission denied or no matching device."""
    pass


class DetectionCycleError(FaceGuideError):
    """A single detection cycle failed. Treated as "no face" for that cycle."""
    pass


class CaptureError(FaceGuideError):
    """The still capture could not be produced."""
    pass

"""Exception types raised while configuring a render or building a scene."""


class ConfigurationError(ValueError):
    """Raised when a render or camera configuration is invalid.

    Examples are a zero image width, zero samples per pixel, or a camera
    whose view direction is parallel to its up vector. Raised before any
    rendering work starts.
    """


class SceneBuildError(ValueError):
    """Raised when a scene cannot be built.

    Covers singular transforms, non-positive volume densities, unknown
    material or texture references and similar construction-time problems.
    Malformed scenes fail once here rather than during sampling.
    """

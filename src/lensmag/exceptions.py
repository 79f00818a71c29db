"""Exception hierarchy for lensmag.

Only malformed configuration is raised to the caller. Numerical trouble
(non-converged roots, capped contour refinement, unreachable tolerance) is
reported through quality flags on the result instead.
"""


class LensMagError(Exception):
    """Base exception for all lensmag errors."""

    pass


class InvalidConfigurationError(LensMagError):
    """Input rejected before any computation starts."""

    pass


class InvalidLensError(InvalidConfigurationError):
    """Lens separation or mass ratio out of range."""

    def __init__(self, separation: float, mass_ratio: float, reason: str) -> None:
        self.separation = separation
        self.mass_ratio = mass_ratio
        self.reason = reason
        super().__init__(f"Invalid lens (s={separation}, q={mass_ratio}): {reason}")


class InvalidSourceError(InvalidConfigurationError):
    """Source position or radius out of range."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Invalid source: {reason}")


class InvalidPolynomialError(InvalidConfigurationError):
    """Coefficient list that cannot be solved."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Invalid polynomial: {reason}")


class InvalidProfileError(InvalidConfigurationError):
    """Limb-darkening profile that cannot be tabulated."""

    def __init__(self, kind: str, reason: str) -> None:
        self.kind = kind
        self.reason = reason
        super().__init__(f"Invalid limb-darkening profile '{kind}': {reason}")


class TableError(InvalidConfigurationError):
    """Errors related to the single-lens lookup table."""

    pass


class TableLoadError(TableError):
    """Error reading a table file."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to load table '{path}': {reason}")


class TableFormatError(TableError):
    """Table file with an unexpected layout."""

    def __init__(self, path: str, details: str) -> None:
        self.path = path
        self.details = details
        super().__init__(f"Invalid table format '{path}': {details}")


class TableNotLoadedError(TableError):
    """Single-lens lookup requested before a table was loaded."""

    def __init__(self) -> None:
        super().__init__("No single-lens table loaded; call load_espl_table() first")

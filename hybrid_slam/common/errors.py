"""Exception types raised by the hybrid inference core."""


class HybridError(Exception):
    """Base class for hybrid_slam errors."""


class ShapeMismatch(HybridError, ValueError):
    """
    Declared discrete/continuous shape disagrees with the supplied data.

    Raised when a leaf-value count does not equal the product of discrete
    cardinalities, a label is used with two cardinalities, or a conditional's
    key sets disagree with the mixture it is placed in.
    """


class KeyNotFound(HybridError, KeyError):
    """An assignment or value map lacks a key that is required."""

    def __init__(self, key: int, where: str = ""):
        self.key = key
        msg = f"key {key} missing from assignment"
        if where:
            msg = f"{where}: {msg}"
        super().__init__(msg)

    def __str__(self) -> str:
        # KeyError.__str__ repr()s its argument
        return str(self.args[0])


class IndeterminantLinearSystem(HybridError, ValueError):
    """Frontal block of a Gaussian elimination is rank deficient."""

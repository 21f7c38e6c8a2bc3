"""Exception types raised by the density and recursion kernels."""


class HornsharkError(Exception):
    """Base class for hornshark errors."""


class ShapeError(HornsharkError, ValueError):
    """Input dimensions are inconsistent across arguments."""


class NumericalError(HornsharkError, ArithmeticError):
    """Computation cannot produce a finite result.

    Raised for covariance matrices that are not symmetric positive-definite,
    and for zero total probability mass during a scaled recursion.
    """

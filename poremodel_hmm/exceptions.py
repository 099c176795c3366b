"""
Error hierarchy for pore model training.

Every error carries a ``recoverable`` flag. Recoverable errors are confined
to a single read or a single reference position: the trainer reports them
and moves on. Everything else ends the run.
"""


class PoreModelError(Exception):
    """Base class for all errors raised by this package."""

    recoverable = False


class ConfigurationError(PoreModelError):
    """Invalid arguments, unreadable inputs or unwritable outputs."""


class ModelFinalisedError(PoreModelError, RuntimeError):
    """The HMM topology was modified after finalise(), or used before it."""


class RecoverableError(PoreModelError):
    """Errors that abandon one read or one position, never the run."""

    recoverable = True


class NumericalError(RecoverableError, ArithmeticError):
    """Log-space arithmetic hit an undefined value."""


class NegativeLogError(NumericalError):

    def __init__(self, message: str = "Negative value passed to natural log function."):
        super().__init__(message)


class DivideByZeroError(NumericalError, ZeroDivisionError):

    def __init__(self, message: str = "log_div: cannot divide by zero."):
        super().__init__(message)


class ModelLookupError(RecoverableError, KeyError):
    """A k-mer has no entry in the pore model."""

    def __init__(self, kmer: str):
        self.kmer = kmer
        super().__init__(kmer)

    def __str__(self) -> str:
        return f"k-mer {self.kmer!r} not found in pore model"


class LatticeError(RecoverableError, ValueError):
    """A reference window cannot be turned into a profile HMM."""

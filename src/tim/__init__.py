"""tim: plan readiness and review reporting for LLM-driven development."""

from .errors import TimError

__all__ = ["TimError", "__version__"]

__version__ = "0.4.0"

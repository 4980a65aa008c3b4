"""Response contract validation."""

from .validator import ResponseContractValidator

__all__ = ["ResponseContractValidator"]

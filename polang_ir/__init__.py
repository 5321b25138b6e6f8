"""Polang intermediate representation: types, operations, verification, return-type inference and lowering."""

__version__ = "0.1.0"
__all__ = ["types", "ir", "type_inference", "std", "lowering"]
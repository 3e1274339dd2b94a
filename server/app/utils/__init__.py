from .quantity import quantize_qty

__all__ = ["quantize_qty"]

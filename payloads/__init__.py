"""
Header variant sources for headerpwn
"""

from .variants import load_variants

__all__ = ["load_variants"]

"""
dualpng: build PNG files that render as one image under gamma-aware viewers
and as a different image under viewers that ignore the gAMA chunk.
"""

__version__ = "1.0.0"

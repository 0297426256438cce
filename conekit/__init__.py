"""Cone projections, matrix equilibration and Anderson acceleration for conic solvers."""

__version__ = "0.1.0"

__all__ = ["aa", "cones", "exp_cone", "interrupt", "linalg", "matrix", "normalize", "scaling"]
"""
arimalab utilities

Numerical helpers shared across models.
"""

from .differentiation import gradient_2sided, hessian_2sided

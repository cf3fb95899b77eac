"""
arimalab models

Model families provided by the package. Currently the univariate ARIMA
family in ``arimalab.models.time_series``.
"""

import logging

logger = logging.getLogger("arimalab.models")

from . import time_series

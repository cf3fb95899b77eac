"""
arimalab test suite.

Tests for simulation, estimation, diagnostics, forecasting and order
selection of ARIMA models.
"""

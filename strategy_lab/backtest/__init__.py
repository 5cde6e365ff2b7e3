"""Backtesting engine, metrics, parameter optimization and reporting.
Provides reusable components for running simulations, computing metrics, and producing diagnostic outputs.
"""

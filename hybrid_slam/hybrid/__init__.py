"""Hybrid factors, Gaussian mixture conditionals and Sum elimination."""

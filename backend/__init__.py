"""Heatbooster dashboard backend."""

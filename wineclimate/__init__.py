"""
Wine climate enrichment.

Batch job that attaches vintage years, validated coordinates, nearest
weather stations and harvest-season climate averages to wine reviews.
"""

__version__ = "0.1.0"

"""Scorekeeping core: database models and scoring services."""

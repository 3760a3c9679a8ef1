"""Discipline reviewers and the model-facing helpers they share."""

"""Routing — path normalization and route classification.

Both are pure functions of their input and the config, so every entry
point shares one definition of "canonical" and one category table.
"""

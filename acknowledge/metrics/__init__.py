"""
acknowledge.metrics — Contributor aggregation.

Modules:
    thanks — bot filtering, sole-contributor rule, threshold exclusion and
             the three report views.
"""

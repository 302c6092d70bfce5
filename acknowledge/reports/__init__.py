"""
acknowledge.reports — ACKNOWLEDGEMENTS.md rendering.

Modules:
    acknowledgements_report — Jinja2 rendering and output write.
"""

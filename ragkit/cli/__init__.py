"""Command-line tools.

Each submodule is self-contained and runs with ``python -m ragkit.cli.<module>``:

  eval -- run a labeled dataset against the configured engine and write
          report.json / summary.md (plus diff files against a baseline)
"""

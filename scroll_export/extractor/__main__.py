"""
Exporter Module Entry Point

Allows execution via: python -m scroll_export.extractor

Delegates to the scheduler for all execution modes (RUN_ONCE and scheduled).
"""

from scroll_export.extractor.scheduler import cli

if __name__ == "__main__":
    cli()

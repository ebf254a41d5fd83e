"""
scroll-export - Concurrent Elasticsearch Scroll Exporter

Packages:
- extractor: cursor sources, page producer, pipeline coordination, scheduler
- transformer: decode workers
- saver: persistence sinks
- utils: configuration, logging, schemas, errors, Redis publisher
"""

__version__ = "0.1.0"

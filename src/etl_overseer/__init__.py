"""
ETL Overseer

Runs configuration-defined ingestion actions and pipelines against a MySQL
compatible target, surfacing the engine's data-quality warnings under a
configurable suppression policy.
"""

__version__ = "0.1.0"

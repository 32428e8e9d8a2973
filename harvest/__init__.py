"""Harvest package initializer.

Incremental harvesting engine for virtualized chat lists: scroll-driven
acquisition into a deduplicating cache, then chronological reassembly of
the list container. Run the orchestrator via `python -m harvest.collect`.
"""

"""Scheduled Google Jobs fetcher.

- `sources/` fetches raw results (SerpAPI) and classifies failures.
- `normalize.py` maps raw results onto `JobRecord`.
- `store.py` inserts records once per job_id.
- `pipeline.py` runs a batch of queries; `scheduler.py` runs batches on cron.
"""

"""
Background jobs for the forecast API.

The refresh job runs in-process on a fixed interval (see scheduler.py) and
can also be run standalone from cron or a Cloud Run Job.

Usage:
    python -m services.forecast_api.jobs.refresh_popular

Schedule:
    hourly  refresh_popular  -- re-fetch weather + forecast for the 10 most-searched cities
"""

"""
Scheduled jobs for the Pulse engine.

This package provides:
- A SQL-backed job table with compare-and-swap status transitions
- Hourly, daily and weekly recurrence anchored on the scheduled time
- An explicit handler registry dispatched by the job runner
- Crash recovery of jobs left running by a dead process
"""

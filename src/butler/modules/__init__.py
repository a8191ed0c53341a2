"""Feature modules.

Each module owns one JSON data file, answers the commands it recognizes
and may run a periodic cycle driven by the scheduler.
"""

"""Rate limit storage adapters.

Strategies talk to storage only through ``RateLimitStorage`` so the same
algorithm can run against a per-process map or a shared Redis instance.
"""

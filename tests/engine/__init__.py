"""
Job Engine Test Suite.

- Capacity probe (backoff, jitter, exhaustion)
- Engine operations and state machine (create, trigger, cancel)
- Invariants under concurrency
- Job store persistence
- HTTP scheduling gateway client
"""

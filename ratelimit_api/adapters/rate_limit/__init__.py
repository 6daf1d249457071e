"""Rate limiting strategies.

Two interchangeable algorithms (fixed window counter, sliding window log)
sharing one interface so the admission gate can pick either per endpoint or
per call without knowing which storage backend sits underneath.
"""

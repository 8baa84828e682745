"""Domain: exceptions, config records and the key snapshot.

No I/O here; the application layer wires these to a key store.
"""

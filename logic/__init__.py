"""
Placement logic with no I/O: club models, the placement state machine,
marker bookkeeping, viewport state and configuration.
"""

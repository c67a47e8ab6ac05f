"""
Delivery lifecycle.

- states: statuses and the legal transition table
- transitions: the pure transition engine applied by every writer
"""

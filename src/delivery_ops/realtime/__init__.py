"""Change propagation: the in-process change feed and user notices."""

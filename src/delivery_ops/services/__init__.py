"""Record store and the delivery operations exposed to dashboards."""

"""Background delivery simulation and demo data seeding."""

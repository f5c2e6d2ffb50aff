"""Service layer for the CloudSim application."""

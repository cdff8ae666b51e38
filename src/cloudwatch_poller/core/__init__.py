"""Core domain: models, ports, configuration and query/emit logic."""

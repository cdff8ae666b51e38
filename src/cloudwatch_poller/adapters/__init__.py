"""Adapters for the CloudWatch API, event sinks, logging and HTTP."""

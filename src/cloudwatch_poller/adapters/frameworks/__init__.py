"""Framework adapters exposing poller state over HTTP."""

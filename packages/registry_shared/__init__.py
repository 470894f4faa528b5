"""Shared primitives for the function registry: config, envelopes, errors, ids, logging."""

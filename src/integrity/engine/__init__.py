"""Bounded-concurrency hashing engine."""

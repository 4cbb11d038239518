"""Measurement and comparison engine for stackduel.

Samples request latency, drives load tests, analyzes builds, and
turns the per-target results into persisted A/B comparison records.
"""

"""Core domain package for refwatch.

Core contains classification, range resolution, batching and composition
logic without any git subprocess, storage or mail code, keeping the business
logic portable and testable against fakes.
"""

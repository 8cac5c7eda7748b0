"""
Test suite for MedQueue.

Contains unit tests for the token allocator, verification workflow and
booking orchestrator, plus API integration tests.
"""
import os

# Set environment for testing
os.environ["TESTING"] = "1"

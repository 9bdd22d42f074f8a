"""
Test suite for the Clinic Appointment Backend.

Unit tests for the services and API tests for every router.
"""
import os
import pytest

# Set environment for testing
os.environ["TESTING"] = "1"

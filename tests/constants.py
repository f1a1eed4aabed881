"""Constants shared across the test suite."""

TEST_PASSWORD = "SecureTest#123"

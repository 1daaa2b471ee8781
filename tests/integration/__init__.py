"""Integration tests that drive batchsplice against real git repositories."""

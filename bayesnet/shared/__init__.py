"""bayesnet/shared: dataset and configuration models used across packages."""

"""HTTP routers for the TaskVault API."""

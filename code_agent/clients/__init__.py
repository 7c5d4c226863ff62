"""Backend API clients."""

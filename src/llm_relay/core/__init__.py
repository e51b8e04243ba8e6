"""Session orchestration: store, progress publishing, cancellation, errors."""

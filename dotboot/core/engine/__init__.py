"""Engine — the reconciliation loop."""

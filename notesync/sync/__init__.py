# Sync state machine, reconciliation engine and scheduler

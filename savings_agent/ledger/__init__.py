"""Cost/revenue ledger, plan store and their persisted models."""

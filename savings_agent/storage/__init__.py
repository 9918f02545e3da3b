"""Local JSON persistence for plans, transactions, costs and revenue."""

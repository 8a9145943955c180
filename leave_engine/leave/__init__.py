"""Leave requests, balances, approval routing and lifecycle."""

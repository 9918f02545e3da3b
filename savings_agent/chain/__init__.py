"""On-chain access: calldata encoding, attribution, signing client and transaction helper."""

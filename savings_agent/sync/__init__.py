"""Best-effort push of agent statistics to an external metrics sink."""

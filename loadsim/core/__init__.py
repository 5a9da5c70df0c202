"""Journey state machine, batch dispatcher and outcome aggregation."""

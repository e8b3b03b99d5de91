"""Business rules for the alumni association, one module per area."""

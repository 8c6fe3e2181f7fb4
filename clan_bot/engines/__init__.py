"""Game and monitoring engines driven by the cogs and the scheduler."""

"""BunnyVault placement service: shard assignment and per-tenant collection trees."""

__version__ = "1.0.0"

"""Number slot reservation and winner selection engine for raffles and giveaways."""

__version__ = "0.1.0"

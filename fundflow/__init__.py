"""fundflow: order processing core for the crowdfunding backend."""

__version__ = "0.1.0"

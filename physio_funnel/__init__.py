"""Lead intake and funnel tracking backend for physiotherapy practices."""

__version__ = "0.1.0"

"""Investor follow-up bot: Slack front end for a Monday.com investor pipeline."""

__version__ = "0.1.0"

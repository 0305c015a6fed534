"""Group activity desk: Discord/Roblox identity links, play-session ledger and weekly quotas."""

__version__ = "0.1.0"

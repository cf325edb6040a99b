"""Utility modules for snaptracker."""

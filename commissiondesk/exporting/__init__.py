"""Spreadsheet exports."""

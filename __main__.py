"""Pulumi entry point."""

from apistack.program import main

main()

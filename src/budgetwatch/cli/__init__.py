"""Command line interface for budgetwatch."""

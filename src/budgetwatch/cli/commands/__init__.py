"""CLI commands for budgetwatch."""

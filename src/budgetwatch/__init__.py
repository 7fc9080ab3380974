"""Household budget alerting: deduplicated notifications and balance-risk toasts."""

__version__ = "0.1.0"


# Import main lazily so the domain layer can be used without click installed
def __getattr__(name):
    if name == "main":
        from budgetwatch.cli.main import main
        return main
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
